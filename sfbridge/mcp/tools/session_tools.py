"""Connection and REST tools: act as the user of the page they are viewing."""
import logging
from typing import Optional

from sfbridge.config import get_settings
from sfbridge.mcp.server import register_tool
from sfbridge.mcp.tools._context import create_json_response, error_response, resolve_session
from sfbridge.services.credentials import StoredSessionStore
from sfbridge.services.salesforce import RestClient

logger = logging.getLogger(__name__)


def _rest_client(page_url: Optional[str]) -> RestClient:
    return RestClient(resolve_session(page_url), get_settings().api_version)


@register_tool
def get_connection(page_url: str = "") -> str:
    """Find the session and API host for the Salesforce page the user is viewing.

    Args:
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        session = resolve_session(page_url or None)
        return create_json_response(True, connection=session.to_connection(get_settings().api_version))
    except Exception as e:
        return error_response(e)


@register_tool
def report_page_session(session_id: str, href: str) -> str:
    """Record the session a page observer saw, used as the last-resort fallback.

    Args:
        session_id (str): Value of the page's sid cookie.
        href (str): Full URL of the page the cookie was read on.
    """
    try:
        StoredSessionStore(get_settings().stored_session_file).report(session_id, href)
        return create_json_response(True, message="Session stored")
    except Exception as e:
        return error_response(e)


@register_tool
async def salesforce_api_request(path: str, method: str = "GET", body: str = "", page_url: str = "") -> str:
    """Issue an arbitrary REST call against the org of the active page.

    Args:
        path (str): Absolute path, e.g. /services/data/v62.0/limits/
        method (str): HTTP method. Defaults to GET.
        body (str): JSON request body, if any.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        data = await _rest_client(page_url or None).request(path, method, body or None)
        return create_json_response(True, data=data)
    except Exception as e:
        return error_response(e, path=path)


@register_tool
async def execute_soql_query(query: str, use_tooling_api: bool = False, page_url: str = "") -> str:
    """Execute a SOQL (or Tooling SOQL) query and return a normalized JSON string.

    Results beyond the first page are not fetched; the `nextRecordsUrl` is
    returned so `salesforce_api_request` can follow it.

    Args:
        query (str): Raw SOQL string.
        use_tooling_api (bool): Run against the Tooling API.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        client = _rest_client(page_url or None)
        if use_tooling_api:
            result = await client.tooling_query(query)
        else:
            result = await client.query(query)
        return create_json_response(
            True,
            totalSize=result.get("totalSize", 0),
            done=result.get("done", True),
            records=result.get("records", []),
            nextRecordsUrl=result.get("nextRecordsUrl"),
        )
    except Exception as e:
        return error_response(e, query=query)


@register_tool
async def get_field_definition(object_name: str, field_name: str, page_url: str = "") -> str:
    """FieldDefinition row (standard or custom field) from the Tooling API.

    Args:
        object_name (str): Object API name, e.g. Account.
        field_name (str): Field API name, e.g. Industry.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        definition = await _rest_client(page_url or None).get_field_definition(object_name, field_name)
        if definition is None:
            return create_json_response(False, error=f"{object_name}.{field_name} not found")
        return create_json_response(True, definition=definition)
    except Exception as e:
        return error_response(e)


@register_tool
async def fetch_more_query_results(next_records_url: str, page_url: str = "") -> str:
    """Fetch the next page of a SOQL result.

    Args:
        next_records_url (str): The `nextRecordsUrl` returned by `execute_soql_query`.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        result = await _rest_client(page_url or None).query_more(next_records_url)
        return create_json_response(
            True,
            totalSize=result.get("totalSize", 0),
            done=result.get("done", True),
            records=result.get("records", []),
            nextRecordsUrl=result.get("nextRecordsUrl"),
        )
    except Exception as e:
        return error_response(e, next_records_url=next_records_url)


# =============================================================================
# ORG METADATA LOOKUPS
# =============================================================================

@register_tool
async def fetch_object_metadata(object_name: str, page_url: str = "") -> str:
    """Label and field summary of an object from the REST describe.

    Args:
        object_name (str): Object API name, e.g. Account or Invoice__c.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        desc = await _rest_client(page_url or None).describe_sobject(object_name)
        fields = []
        for f in desc.get("fields", []):
            fd = {
                "name": f["name"],
                "label": f["label"],
                "type": f["type"],
                "required": not f.get("nillable", True),
                "custom": f.get("custom", False),
            }
            if f["type"] in {"picklist", "multipicklist"}:
                fd["picklistValues"] = [
                    {"value": pv["value"], "label": pv["label"]}
                    for pv in f.get("picklistValues", []) if pv.get("active")
                ]
            if f["type"] == "reference":
                fd["referenceTo"] = f.get("referenceTo", [])
            fields.append(fd)
        return create_json_response(
            True,
            objectName=desc.get("name", object_name),
            label=desc.get("label"),
            isCustom=desc.get("custom", False),
            totalFields=len(fields),
            fields=fields,
        )
    except Exception as e:
        return error_response(e, objectName=object_name)


@register_tool
async def list_sobjects(custom_only: bool = False, page_url: str = "") -> str:
    """Names and labels of the org's objects.

    Args:
        custom_only (bool): Only return custom objects.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        result = await _rest_client(page_url or None).describe_global()
        sobjects = [
            {"name": s["name"], "label": s["label"], "custom": s.get("custom", False)}
            for s in result.get("sobjects", [])
            if not custom_only or s.get("custom")
        ]
        return create_json_response(True, totalSize=len(sobjects), sobjects=sobjects)
    except Exception as e:
        return error_response(e)


@register_tool
async def get_org_limits(page_url: str = "") -> str:
    """Current usage and maximum of the org's API limits.

    Args:
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        return create_json_response(True, limits=await _rest_client(page_url or None).limits())
    except Exception as e:
        return error_response(e)


@register_tool
async def fetch_custom_field(object_name: str, field_developer_name: str, page_url: str = "") -> str:
    """Tooling API CustomField row, including its Metadata, for a custom field.

    Args:
        object_name (str): Object API name (or id, for custom objects).
        field_developer_name (str): DeveloperName of the field, without the __c suffix.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        field = await _rest_client(page_url or None).get_custom_field_def(object_name, field_developer_name)
        if field is None:
            return create_json_response(False, error="Field not found")
        return create_json_response(True, field=field)
    except Exception as e:
        return error_response(e)


@register_tool
async def search_apex_classes(search: str, page_url: str = "") -> str:
    """Apex classes whose name contains a search string (first 20).

    Args:
        search (str): Part of the class name.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        records = await _rest_client(page_url or None).search_apex_classes(search)
        return create_json_response(True, totalSize=len(records), records=records)
    except Exception as e:
        return error_response(e, search=search)


@register_tool
async def search_flows(search: str, page_url: str = "") -> str:
    """Flows whose label contains a search string (first 20).

    Args:
        search (str): Part of the flow label.
        page_url (str): URL of the active page. Defaults to SFBRIDGE_PAGE_URL.
    """
    try:
        records = await _rest_client(page_url or None).search_flows(search)
        return create_json_response(True, totalSize=len(records), records=records)
    except Exception as e:
        return error_response(e, search=search)
