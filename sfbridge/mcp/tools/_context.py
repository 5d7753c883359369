"""Helpers shared by the tool modules (not itself a tool module)."""
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sfbridge.config import get_settings
from sfbridge.errors import BridgeError
from sfbridge.services.session import Session, build_resolver
from sfbridge.services.soap_client import SoapClient, build_async_client

logger = logging.getLogger(__name__)


def create_json_response(success, **kwargs):
    """Create guaranteed valid JSON response"""
    result = {"success": success}

    for key, value in kwargs.items():
        if value is None or isinstance(value, (str, int, float, bool, list, dict)):
            result[key] = value
        else:
            result[key] = str(value)

    return json.dumps(result, indent=2)


def error_response(error: Exception, **kwargs) -> str:
    if isinstance(error, BridgeError):
        return create_json_response(False, error=str(error), kind=error.kind, **kwargs)
    logger.error("Unexpected tool error: %s", error, exc_info=True)
    return create_json_response(False, error=str(error) or error.__class__.__name__, **kwargs)


def resolve_session(page_url: Optional[str] = None) -> Session:
    """Credentials are looked up fresh on every call; nothing is cached."""
    settings = get_settings()
    return build_resolver(settings).require(page_url or settings.page_url)


@asynccontextmanager
async def soap_client(page_url: Optional[str] = None) -> AsyncIterator[SoapClient]:
    session = resolve_session(page_url)
    settings = get_settings()
    async with build_async_client(settings) as http:
        yield SoapClient(session, http, settings.api_version)
