"""Async SOAP calls bound to one resolved session."""
import base64
import logging
from typing import Optional

import httpx

from sfbridge.config import BridgeSettings, get_settings
from sfbridge.errors import RemoteFault, TransportFailure
from sfbridge.services.session import Session
from sfbridge.services.soap import (
    METADATA_PATH,
    PARTNER_PATH,
    SOAP_HEADERS,
    DeployJob,
    DescribeResult,
    build_check_status_envelope,
    build_deploy_envelope,
    build_describe_envelope,
    fault_string,
    parse_describe,
    parse_deploy_status,
    parse_deploy_submit,
)

logger = logging.getLogger(__name__)


def build_async_client(settings: Optional[BridgeSettings] = None, **kwargs) -> httpx.AsyncClient:
    settings = settings or get_settings()
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds), **kwargs)


class SoapClient:
    """Partner ``describeSObject`` plus Metadata ``deploy``/``checkDeployStatus``.

    The caller owns ``http`` and closes it.
    """

    def __init__(self, session: Session, http: httpx.AsyncClient, api_version: str = "62.0"):
        self.session = session
        self.http = http
        self.api_version = api_version

    @property
    def partner_url(self) -> str:
        return self.session.instance_url + PARTNER_PATH.format(api_version=self.api_version)

    @property
    def metadata_url(self) -> str:
        return self.session.instance_url + METADATA_PATH.format(api_version=self.api_version)

    async def _post(self, url: str, envelope: str, action: str) -> str:
        logger.debug("SOAP %s -> %s", action, url)
        try:
            response = await self.http.post(url, content=envelope.encode("utf-8"), headers=SOAP_HEADERS)
        except httpx.HTTPError as e:
            raise TransportFailure(f"SOAP {action} failed: {e}") from e

        text = response.text
        if not response.is_success:
            fault = fault_string(text)
            if fault:
                raise RemoteFault(fault)
            raise TransportFailure(f"SOAP {response.status_code}", status_code=response.status_code)
        return text

    async def describe_sobject(self, object_name: str, locale: str) -> DescribeResult:
        envelope = build_describe_envelope(self.session.session_id, object_name, locale)
        text = await self._post(self.partner_url, envelope, "describeSObject")
        return parse_describe(text)

    async def deploy(self, archive: bytes) -> str:
        zip_base64 = base64.b64encode(archive).decode("ascii")
        envelope = build_deploy_envelope(self.session.session_id, zip_base64)
        text = await self._post(self.metadata_url, envelope, "deploy")
        return parse_deploy_submit(text)

    async def check_deploy_status(self, job_id: str) -> DeployJob:
        envelope = build_check_status_envelope(self.session.session_id, job_id)
        text = await self._post(self.metadata_url, envelope, "checkDeployStatus")
        return parse_deploy_status(text, job_id)
