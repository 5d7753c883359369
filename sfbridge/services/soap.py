"""SOAP envelopes and targeted extraction for describe / deploy / checkDeployStatus.

Replies are not run through an XML parser: only a handful of tags are read,
each with a first-match rule, so extraction is a small set of regexes.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from xml.sax.saxutils import escape, unescape

from sfbridge.errors import RemoteFault

SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
PARTNER_NS = "urn:partner.soap.sforce.com"
METADATA_NS = "http://soap.sforce.com/2006/04/metadata"

# Where a deploy status error message was found, in lookup order.
ERROR_MESSAGE = "errorMessage"
COMPONENT_PROBLEM = "componentProblem"
FAULT = "fault"
ERROR_SOURCES = (ERROR_MESSAGE, COMPONENT_PROBLEM, FAULT)

PARTNER_PATH = "/services/Soap/u/{api_version}"
METADATA_PATH = "/services/Soap/m/{api_version}"

SOAP_HEADERS = {
    "Content-Type": "text/xml; charset=utf-8",
    "SOAPAction": '""',
}

DESCRIBE_SOBJECT = """<?xml version="1.0" encoding="utf-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns:urn="urn:partner.soap.sforce.com">
  <soapenv:Header>
    <urn:SessionHeader><urn:sessionId>{session_id}</urn:sessionId></urn:SessionHeader>
    <urn:LocaleOptions><urn:language>{locale}</urn:language></urn:LocaleOptions>
  </soapenv:Header>
  <soapenv:Body>
    <urn:describeSObject><urn:sObjectType>{object_name}</urn:sObjectType></urn:describeSObject>
  </soapenv:Body>
</soapenv:Envelope>"""

DEPLOY = """<?xml version="1.0" encoding="utf-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns:met="http://soap.sforce.com/2006/04/metadata">
  <soapenv:Header>
    <met:SessionHeader><met:sessionId>{session_id}</met:sessionId></met:SessionHeader>
  </soapenv:Header>
  <soapenv:Body>
    <met:deploy>
      <met:ZipFile>{zip_base64}</met:ZipFile>
      <met:DeployOptions>
        <met:rollbackOnError>true</met:rollbackOnError>
        <met:singlePackage>true</met:singlePackage>
      </met:DeployOptions>
    </met:deploy>
  </soapenv:Body>
</soapenv:Envelope>"""

CHECK_DEPLOY_STATUS = """<?xml version="1.0" encoding="utf-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns:met="http://soap.sforce.com/2006/04/metadata">
  <soapenv:Header>
    <met:SessionHeader><met:sessionId>{session_id}</met:sessionId></met:SessionHeader>
  </soapenv:Header>
  <soapenv:Body>
    <met:checkDeployStatus>
      <met:asyncProcessId>{job_id}</met:asyncProcessId>
      <met:includeDetails>true</met:includeDetails>
    </met:checkDeployStatus>
  </soapenv:Body>
</soapenv:Envelope>"""


@dataclass
class PicklistEntry:
    value: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"value": self.value, "label": self.label}


@dataclass
class DescribeResult:
    field_labels: Dict[str, str] = field(default_factory=dict)
    picklist_values: Dict[str, List[PicklistEntry]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "fieldLabels": dict(self.field_labels),
            "picklistValues": {
                name: [entry.to_dict() for entry in entries]
                for name, entries in self.picklist_values.items()
            },
        }


@dataclass
class DeployJob:
    id: str
    done: bool = False
    success: bool = False
    status: str = ""
    error_message: Optional[str] = None
    # Which part of the response error_message came from: one of ERROR_SOURCES, or None.
    error_source: Optional[str] = None


# =============================================================================
# ENVELOPES
# =============================================================================

def xml_escape(value: str) -> str:
    return escape(str(value), {'"': "&quot;"})


def build_describe_envelope(session_id: str, object_name: str, locale: str) -> str:
    return DESCRIBE_SOBJECT.format(
        session_id=xml_escape(session_id),
        locale=xml_escape(locale),
        object_name=xml_escape(object_name),
    )


def build_deploy_envelope(session_id: str, zip_base64: str) -> str:
    return DEPLOY.format(session_id=xml_escape(session_id), zip_base64=zip_base64)


def build_check_status_envelope(session_id: str, job_id: str) -> str:
    return CHECK_DEPLOY_STATUS.format(session_id=xml_escape(session_id), job_id=xml_escape(job_id))


# =============================================================================
# EXTRACTION
# =============================================================================

def _tag(name: str) -> str:
    # Optional namespace prefix and attributes, e.g. <sf:fields xsi:type="...">.
    # Self-closing elements (<errorMessage xsi:nil="true"/>) have no body and never match.
    return r"<(?:\w+:)?%s(?:\s[^>]*?)?(?<!/)>" % name


def _close(name: str) -> str:
    return r"</(?:\w+:)?%s>" % name


def find_all_blocks(name: str, text: str) -> List[str]:
    pattern = re.compile(_tag(name) + r"(.*?)" + _close(name), re.DOTALL)
    return pattern.findall(text)


def find_first(name: str, text: str) -> Optional[str]:
    match = re.search(_tag(name) + r"(.*?)" + _close(name), text, re.DOTALL)
    if match is None:
        return None
    return unescape(match.group(1), {"&quot;": '"', "&apos;": "'"})


def remove_blocks(name: str, text: str) -> str:
    return re.sub(_tag(name) + r".*?" + _close(name), "", text, flags=re.DOTALL)


def fault_string(text: str) -> Optional[str]:
    return find_first("faultstring", text)


def parse_describe(text: str) -> DescribeResult:
    """Field labels plus the active picklist values of every field."""
    fault = fault_string(text)
    if fault is not None:
        raise RemoteFault(fault)

    result = DescribeResult()
    for block in find_all_blocks("fields", text):
        picklists = find_all_blocks("picklistValues", block)
        # Picklist entries carry their own <label>; read the field's own tags without them.
        own = remove_blocks("picklistValues", block)
        name = find_first("name", own)
        label = find_first("label", own)
        if name is None or label is None:
            continue
        result.field_labels[name] = label

        active = []
        for entry in picklists:
            value = find_first("value", entry)
            entry_label = find_first("label", entry)
            if value is None or find_first("active", entry) != "true":
                continue
            active.append(PicklistEntry(value=value, label=entry_label if entry_label is not None else value))
        if active:
            result.picklist_values[name] = active
    return result


def parse_deploy_submit(text: str) -> str:
    """Return the async job id or raise ``RemoteFault``."""
    job_id = find_first("id", text)
    if job_id:
        return job_id
    raise RemoteFault(fault_string(text) or "No deploy ID returned")


def component_problem(text: str) -> Optional[str]:
    """``"<fullName>: <problem>"`` of the first failed component."""
    for block in find_all_blocks("componentFailures", text):
        problem = find_first("problem", block)
        if problem:
            full_name = find_first("fullName", block)
            return f"{full_name}: {problem}" if full_name else problem
    full_name = find_first("fullName", text)
    problem = find_first("problem", text)
    if full_name and problem:
        return f"{full_name}: {problem}"
    return None


def parse_deploy_status(text: str, job_id: str = "") -> DeployJob:
    # Component results inside <details> repeat <id>/<success>; top-level flags come from the rest.
    top = remove_blocks("details", text)
    candidates = (
        (ERROR_MESSAGE, find_first("errorMessage", top)),
        (COMPONENT_PROBLEM, component_problem(text)),
        (FAULT, fault_string(text)),
    )
    source, error = next(((s, message) for s, message in candidates if message), (None, None))
    return DeployJob(
        id=find_first("id", top) or job_id,
        done=find_first("done", top) == "true",
        success=find_first("success", top) == "true",
        status=find_first("status", top) or "",
        error_message=error,
        error_source=source,
    )

