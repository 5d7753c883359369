"""Field label / picklist translations: reading them per locale and packaging a change.

Deploys use the mdapi format: one flat ``objectTranslations/<Object>-<suffix>.objectTranslation``
file with the field translations embedded as ``<fields>`` elements.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from lxml import etree

from sfbridge.services.archive import ArchiveBuilder
from sfbridge.services.soap import DescribeResult
from sfbridge.services.soap_client import SoapClient

logger = logging.getLogger(__name__)

PNS = "http://soap.sforce.com/2006/04/metadata"
TRANSLATION_DIR = "objectTranslations/"
TRANSLATION_TYPE = "CustomObjectTranslation"

LOCALE_TO_SUFFIX = {
    "en": "en_US",
    "es": "es",
}


def locale_suffix(locale: str) -> str:
    return LOCALE_TO_SUFFIX.get(locale, locale)


@dataclass(frozen=True)
class PicklistTranslation:
    master_label: str
    translation: str


@dataclass(frozen=True)
class TranslationPayload:
    object_name: str
    field_api_name: str
    locale: str
    label: Optional[str] = None
    picklist_values: Tuple[PicklistTranslation, ...] = ()

    def __post_init__(self):
        for attr in ("object_name", "field_api_name", "locale"):
            if not getattr(self, attr):
                raise ValueError(f"{attr} is required")
        if not self.label and not self.picklist_values:
            raise ValueError("Nothing to translate: give a label and/or picklist values")

    @classmethod
    def build(cls, object_name: str, field_api_name: str, locale: str, label: Optional[str] = None,
              picklist_values: Optional[Iterable[dict]] = None) -> "TranslationPayload":
        """Accepts picklist values as ``{"masterLabel", "translation"}`` dicts."""
        values = tuple(
            PicklistTranslation(master_label=pv["masterLabel"], translation=pv["translation"])
            for pv in (picklist_values or ())
        )
        # An empty label means "leave the label alone", not "blank it".
        return cls(object_name, field_api_name, locale, label or None, values)

    @property
    def member_name(self) -> str:
        return f"{self.object_name}-{locale_suffix(self.locale)}"

    @property
    def file_name(self) -> str:
        return f"{TRANSLATION_DIR}{self.member_name}.objectTranslation"


def _pretty_xml(node) -> str:
    return etree.tostring(
        node, encoding="UTF-8", xml_declaration=True, pretty_print=True
    ).decode("utf-8")


def build_object_translation_xml(payload: TranslationPayload) -> str:
    root = etree.Element(etree.QName(PNS, TRANSLATION_TYPE), nsmap={None: PNS})
    fields = etree.SubElement(root, etree.QName(PNS, "fields"))
    if payload.label:
        etree.SubElement(fields, etree.QName(PNS, "label")).text = payload.label
    etree.SubElement(fields, etree.QName(PNS, "name")).text = payload.field_api_name
    for pv in payload.picklist_values:
        value = etree.SubElement(fields, etree.QName(PNS, "picklistValues"))
        etree.SubElement(value, etree.QName(PNS, "masterLabel")).text = pv.master_label
        etree.SubElement(value, etree.QName(PNS, "translation")).text = pv.translation
    return _pretty_xml(root)


def build_package_xml(members: List[str], metadata_type: str, api_version: str) -> str:
    root = etree.Element(etree.QName(PNS, "Package"), nsmap={None: PNS})
    types_tag = etree.SubElement(root, etree.QName(PNS, "types"))
    for m in members:
        etree.SubElement(types_tag, etree.QName(PNS, "members")).text = m
    etree.SubElement(types_tag, etree.QName(PNS, "name")).text = metadata_type
    etree.SubElement(root, etree.QName(PNS, "version")).text = api_version
    return _pretty_xml(root)


def build_translation_archive(payload: TranslationPayload, api_version: str = "62.0") -> bytes:
    return (
        ArchiveBuilder()
        .add_directory(TRANSLATION_DIR)
        .add(payload.file_name, build_object_translation_xml(payload))
        .add("package.xml", build_package_xml([payload.member_name], TRANSLATION_TYPE, api_version))
        .build()
    )


# =============================================================================
# READING TRANSLATIONS
# =============================================================================

async def get_describe_for_locale(client: SoapClient, object_name: str, locale: str) -> DescribeResult:
    return await client.describe_sobject(object_name, locale)


async def describe_locales(client: SoapClient, object_name: str, locales: Sequence[str]) -> List[DescribeResult]:
    """Describe ``object_name`` once per locale, concurrently.

    Every request is awaited before the first failure is raised, so none is
    left running against a client the caller is about to close.
    """
    results = await asyncio.gather(
        *(client.describe_sobject(object_name, locale) for locale in locales),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


async def get_field_translations(client: SoapClient, object_name: str, field_api_name: str) -> Dict[str, str]:
    """Label of one field in English and Spanish (keys omitted when absent)."""
    en, es = await describe_locales(client, object_name, ("en_US", "es"))
    result = {}
    if en.field_labels.get(field_api_name):
        result["en"] = en.field_labels[field_api_name]
    if es.field_labels.get(field_api_name):
        result["es"] = es.field_labels[field_api_name]
    return result


async def get_picklist_translations(client: SoapClient, object_name: str, field_api_name: str) -> List[dict]:
    """One row per active value of the French describe, with en/es labels by API value."""
    fr, en, es = await describe_locales(client, object_name, ("fr", "en_US", "es"))
    en_map = {v.value: v.label for v in en.picklist_values.get(field_api_name, [])}
    es_map = {v.value: v.label for v in es.picklist_values.get(field_api_name, [])}
    return [
        {
            "value": fv.value,
            "fr": fv.label,
            "en": en_map.get(fv.value, ""),
            "es": es_map.get(fv.value, ""),
        }
        for fv in fr.picklist_values.get(field_api_name, [])
    ]
