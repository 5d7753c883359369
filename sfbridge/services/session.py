"""Session resolution: find the session cookie and API host for a page.

The instance URL is always derived from a cookie's domain (or from the
page host rewritten to the API root), never from the page path: Lightning
pages are served from ``*.lightning.force.com`` while bearer-token API calls
must go to ``*.my.salesforce.com``.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
from urllib.parse import urlparse

from sfbridge.errors import NoActiveContext, NoSession
from sfbridge.services.credentials import (
    PLATFORM_ROOTS,
    SESSION_COOKIE,
    CandidateCredential,
    CookieJarDirectory,
    CredentialDirectory,
    MemoryDirectory,
    StoredSession,
    StoredSessionStore,
    is_platform_domain,
    strip_leading_dot,
)

logger = logging.getLogger(__name__)

API_ROOT = ".my.salesforce.com"
GENERAL_ROOT = "salesforce.com"
FRONTEND_SUFFIX = ".lightning.force.com"

# Tried in order by ``by_domain_probe``: production, sandbox, developer, scratch.
PROBE_ROOTS = (
    ".my.salesforce.com",
    ".sandbox.my.salesforce.com",
    ".develop.my.salesforce.com",
    ".scratch.my.salesforce.com",
)


@dataclass(frozen=True)
class Session:
    session_id: str
    instance_url: str

    def to_connection(self, api_version: str) -> dict:
        return {
            "instanceUrl": self.instance_url,
            "sessionId": self.session_id,
            "apiVersion": f"v{api_version}",
        }

    def __repr__(self):
        # Keep tokens out of logs and tracebacks.
        return f"Session(instance_url={self.instance_url!r})"


@dataclass
class ResolutionContext:
    page_url: str
    hostname: str
    org_id: str
    candidates: List[CandidateCredential]
    directory: CredentialDirectory
    store: Optional[StoredSessionStore] = None
    cookie_name: str = field(default=SESSION_COOKIE)


def org_identifier(hostname: str) -> str:
    """First dot-delimited label, e.g. ``acme--uat`` for ``acme--uat.sandbox.lightning.force.com``."""
    return hostname.split(".")[0]


def to_api_host(hostname: str) -> str:
    if hostname.endswith(FRONTEND_SUFFIX):
        return hostname[: -len(FRONTEND_SUFFIX)] + API_ROOT
    return hostname


def is_platform_url(url: Optional[str]) -> bool:
    if not url:
        return False
    host = urlparse(url).hostname
    return bool(host) and is_platform_domain(host)


def _origin(host: str) -> str:
    return f"https://{host}"


# ---------------------------------------------------------------------------
# Strategies, in priority order. Each returns a Session or None.
# ---------------------------------------------------------------------------

def by_canonical_prefix(ctx: ResolutionContext) -> Optional[Session]:
    """Cookie domain starts with the org id and lives under the API root."""
    for cred in ctx.candidates:
        domain = strip_leading_dot(cred.domain)
        if domain.startswith(ctx.org_id) and API_ROOT in domain:
            return Session(cred.value, _origin(domain))
    return None


def by_root_substring(ctx: ResolutionContext) -> Optional[Session]:
    """Cookie domain merely contains the org id and the general root.

    Covers sandbox/scratch roots that are not literal prefixes. Note this can
    match another tenant whose name contains this org id.
    """
    for cred in ctx.candidates:
        domain = strip_leading_dot(cred.domain)
        if ctx.org_id in domain and GENERAL_ROOT in domain:
            return Session(cred.value, _origin(domain))
    return None


def by_exact_host(ctx: ResolutionContext) -> Optional[Session]:
    value = ctx.directory.get_token(ctx.page_url, ctx.cookie_name)
    if value:
        return Session(value, _origin(to_api_host(ctx.hostname)))
    return None


def by_domain_probe(ctx: ResolutionContext) -> Optional[Session]:
    for root in PROBE_ROOTS:
        domain = ctx.org_id + root
        value = ctx.directory.get_token(_origin(domain), ctx.cookie_name)
        if value:
            return Session(value, _origin(domain))
    return None


def by_stored_session(ctx: ResolutionContext) -> Optional[Session]:
    if ctx.store is None:
        return None
    stored: Optional[StoredSession] = ctx.store.load()
    if stored is None:
        return None
    host = urlparse(stored.href).hostname
    if not host:
        return None
    return Session(stored.session_id, _origin(to_api_host(host)))


Strategy = Callable[[ResolutionContext], Optional[Session]]

STRATEGIES: Sequence[Strategy] = (
    by_canonical_prefix,
    by_root_substring,
    by_exact_host,
    by_domain_probe,
    by_stored_session,
)


class SessionResolver:
    """Runs ``STRATEGIES`` in order; the first hit wins."""

    def __init__(self, directory: CredentialDirectory, store: Optional[StoredSessionStore] = None,
                 strategies: Sequence[Strategy] = STRATEGIES):
        self.directory = directory
        self.store = store
        self.strategies = tuple(strategies)

    def context_for(self, page_url: str) -> Optional[ResolutionContext]:
        hostname = (urlparse(page_url).hostname or "").lower()
        # A bare root has no org label to match on.
        if not hostname or hostname in PLATFORM_ROOTS:
            return None
        return ResolutionContext(
            page_url=page_url,
            hostname=hostname,
            org_id=org_identifier(hostname),
            candidates=self.directory.list_tokens(SESSION_COOKIE),
            directory=self.directory,
            store=self.store,
        )

    def resolve(self, page_url: str) -> Optional[Session]:
        ctx = self.context_for(page_url)
        if ctx is None:
            return None
        for strategy in self.strategies:
            session = strategy(ctx)
            if session is not None:
                logger.info("Resolved session for %s via %s -> %s",
                            ctx.org_id, strategy.__name__, session.instance_url)
                return session
        logger.info("No session found for %s (%d candidate cookies)", ctx.org_id, len(ctx.candidates))
        return None

    def require(self, page_url: Optional[str]) -> Session:
        """Like ``resolve`` but raises the user-facing error kinds."""
        if not page_url:
            raise NoActiveContext("No active Salesforce tab")
        if not is_platform_url(page_url):
            raise NoActiveContext("Not a Salesforce page")
        session = self.resolve(page_url)
        if session is None:
            raise NoSession("No session found")
        return session


def build_resolver(settings) -> SessionResolver:
    """Resolver over the configured cookie export and stored-session file."""
    if settings.cookie_file is not None and settings.cookie_file.exists():
        directory = CookieJarDirectory.from_file(settings.cookie_file)
    else:
        logger.warning("No cookie file configured (SFBRIDGE_COOKIE_FILE); only the stored session is available")
        directory = MemoryDirectory()
    return SessionResolver(directory, StoredSessionStore(settings.stored_session_file))
