"""Translation tools: read labels per locale and deploy translated labels."""
import logging
from typing import Dict, List, Optional

from sfbridge.config import get_settings
from sfbridge.mcp.server import register_tool
from sfbridge.mcp.tools._context import create_json_response, error_response, soap_client
from sfbridge.services import translation
from sfbridge.services.deploy import DeployOrchestrator
from sfbridge.services.translation import TranslationPayload

logger = logging.getLogger(__name__)


@register_tool
async def describe_object_for_locale(object_name: str, locale: str, page_url: str = "") -> str:
    """Field labels and active picklist values of an object, as seen in a locale.

    Args:
        object_name (str): Object API name, e.g. Account.
        locale (str): Language code such as fr, es or en_US.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        async with soap_client(page_url or None) as client:
            result = await translation.get_describe_for_locale(client, object_name, locale)
        return create_json_response(True, data=result.to_dict())
    except Exception as e:
        return error_response(e)


@register_tool
async def get_field_translations(object_name: str, field_api_name: str, page_url: str = "") -> str:
    """English and Spanish labels of one field.

    Args:
        object_name (str): Object API name.
        field_api_name (str): Field API name.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        async with soap_client(page_url or None) as client:
            labels = await translation.get_field_translations(client, object_name, field_api_name)
        return create_json_response(True, data=labels)
    except Exception as e:
        return error_response(e)


@register_tool
async def get_picklist_translations(object_name: str, field_api_name: str, page_url: str = "") -> str:
    """French, English and Spanish labels for each active picklist value of a field.

    Args:
        object_name (str): Object API name.
        field_api_name (str): Picklist field API name.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        async with soap_client(page_url or None) as client:
            rows = await translation.get_picklist_translations(client, object_name, field_api_name)
        return create_json_response(True, data=rows)
    except Exception as e:
        return error_response(e)


@register_tool(writes=True)
async def save_field_translation(
    object_name: str,
    field_api_name: str,
    locale: str,
    label: Optional[str] = None,
    picklist_values: Optional[List[Dict[str, str]]] = None,
    page_url: str = "",
) -> str:
    """Deploy a translated field label (and picklist values) and wait for the result.

    Args:
        object_name (str): Object API name, e.g. Account.
        field_api_name (str): Field API name, e.g. Industry.
        locale (str): Target language (en, es, fr, ...).
        label (str): Translated field label. Omit (or pass "") to keep the current one
            and deploy picklist values only.
        picklist_values (list): Optional [{"masterLabel": ..., "translation": ...}] entries.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        payload = TranslationPayload.build(object_name, field_api_name, locale, label, picklist_values)
        settings = get_settings()
        async with soap_client(page_url or None) as client:
            orchestrator = DeployOrchestrator(
                client,
                max_attempts=settings.deploy_poll_attempts,
                interval=settings.deploy_poll_interval_seconds,
                api_version=settings.api_version,
            )
            outcome = await orchestrator.run(payload)
        result = outcome.to_dict()
        return create_json_response(result.pop("success"), state=outcome.state.value, **result)
    except Exception as e:
        return error_response(e)


@register_tool
async def check_deploy_status(job_id: str, page_url: str = "") -> str:
    """Current status of a metadata deploy job.

    Args:
        job_id (str): Async process id returned by a deploy.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        async with soap_client(page_url or None) as client:
            job = await client.check_deploy_status(job_id)
        return create_json_response(
            True,
            job_id=job.id,
            done=job.done,
            deploy_success=job.success,
            status=job.status,
            error=job.error_message,
        )
    except Exception as e:
        return error_response(e, job_id=job_id)
