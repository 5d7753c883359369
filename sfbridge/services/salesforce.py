"""REST / Tooling API calls over a resolved session (simple_salesforce)."""
import asyncio
import functools
import json
import logging
from typing import Any, Dict, List, Optional

import requests
from simple_salesforce import Salesforce
from simple_salesforce.exceptions import SalesforceError

from sfbridge.errors import RemoteFault, TransportFailure
from sfbridge.services.session import Session

logger = logging.getLogger(__name__)


def get_salesforce_connection(session: Session, api_version: str = "62.0") -> Salesforce:
    """Bearer-token connection; no login is performed."""
    logger.info("🔗 Connecting to %s (API %s)", session.instance_url, api_version)
    return Salesforce(
        instance_url=session.instance_url,
        session_id=session.session_id,
        version=api_version,
    )


def soql_quote(value: str) -> str:
    """Escape a value for use inside a SOQL string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def strip_attributes(result: Dict[str, Any]) -> Dict[str, Any]:
    """Drop the ``attributes`` objects from records and their nested parents."""
    for record in result.get("records") or []:
        record.pop("attributes", None)
        for value in record.values():
            if isinstance(value, dict):
                value.pop("attributes", None)
    return result


def _translate_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SalesforceError as e:
            content = e.content
            message = content if isinstance(content, str) else json.dumps(content)
            raise RemoteFault(message) from e
        except requests.RequestException as e:
            raise TransportFailure(str(e)) from e
    return wrapper


class RestClient:
    """Async facade; each call runs the blocking client in a worker thread."""

    def __init__(self, session: Session, api_version: str = "62.0", sf: Optional[Salesforce] = None):
        self.session = session
        self.api_version = api_version
        self.sf = sf or get_salesforce_connection(session, api_version)

    async def _run(self, func, *args, **kwargs):
        return await asyncio.to_thread(_translate_errors(func), *args, **kwargs)

    async def query(self, soql: str) -> Dict[str, Any]:
        clean = " ".join(soql.strip().split())
        return strip_attributes(await self._run(self.sf.query, clean))

    async def query_more(self, next_records_url: str) -> Dict[str, Any]:
        result = await self._run(self.sf.query_more, next_records_url, identifier_is_url=True)
        return strip_attributes(result)

    async def describe_sobject(self, object_name: str) -> Dict[str, Any]:
        return await self._run(self.sf.restful, f"sobjects/{object_name}/describe")

    async def describe_global(self) -> Dict[str, Any]:
        return await self._run(self.sf.restful, "sobjects/")

    async def limits(self) -> Dict[str, Any]:
        return await self._run(self.sf.restful, "limits/")

    async def tooling_query(self, soql: str) -> Dict[str, Any]:
        clean = " ".join(soql.strip().split())
        return strip_attributes(await self._run(self.sf.toolingexecute, "query/", params={"q": clean}))

    async def get_custom_field_def(self, object_name: str, field_developer_name: str) -> Optional[dict]:
        soql = (
            "SELECT Id, DeveloperName, FullName, TableEnumOrId, Metadata FROM CustomField "
            f"WHERE DeveloperName = '{soql_quote(field_developer_name)}' "
            f"AND TableEnumOrId = '{soql_quote(object_name)}' LIMIT 1"
        )
        records = (await self.tooling_query(soql)).get("records") or []
        return records[0] if records else None

    async def get_field_definition(self, object_name: str, field_name: str) -> Optional[dict]:
        soql = (
            "SELECT QualifiedApiName, DurableId, Label, Description, InlineHelpText, DataType, "
            "IsCompound, IsFieldHistoryTracked, IsIndexed, SecurityClassification, ComplianceGroup "
            "FROM FieldDefinition "
            f"WHERE EntityDefinition.QualifiedApiName = '{soql_quote(object_name)}' "
            f"AND QualifiedApiName = '{soql_quote(field_name)}' LIMIT 1"
        )
        records = (await self.tooling_query(soql)).get("records") or []
        return records[0] if records else None

    async def search_apex_classes(self, search: str) -> List[dict]:
        soql = (f"SELECT Id, Name, Status FROM ApexClass WHERE Name LIKE '%{soql_quote(search)}%' "
                "ORDER BY Name LIMIT 20")
        return (await self.tooling_query(soql)).get("records") or []

    async def search_flows(self, search: str) -> List[dict]:
        soql = (f"SELECT Id, MasterLabel, ProcessType FROM FlowDefinition "
                f"WHERE MasterLabel LIKE '%{soql_quote(search)}%' ORDER BY MasterLabel LIMIT 20")
        return (await self.tooling_query(soql)).get("records") or []

    def _request(self, path: str, method: str, body: Optional[str]) -> Any:
        url = self.session.instance_url + path
        response = self.sf.session.request(
            method, url, headers=self.sf.headers, data=body, timeout=60,
        )
        if not response.ok:
            raise RemoteFault(response.text or f"HTTP {response.status_code}")
        if not response.content:
            return None
        return response.json()

    async def request(self, path: str, method: str = "GET", body: Optional[str] = None) -> Any:
        """Arbitrary call; ``path`` is absolute, e.g. ``/services/data/v62.0/limits/``."""
        if not path.startswith("/"):
            path = "/" + path
        return await self._run(self._request, path, method.upper(), body)
