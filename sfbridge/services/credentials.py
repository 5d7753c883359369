"""Read-only access to the browser's per-domain session cookies.

The directory is owned by the browser; the bridge only enumerates and looks
up cookies, it never writes them. A companion page observer may separately
push the session it saw into a ``StoredSessionStore``.
"""
import logging
from dataclasses import dataclass
from http.cookiejar import CookieJar, MozillaCookieJar
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sid"
PLATFORM_ROOTS = ("salesforce.com", "force.com")


@dataclass(frozen=True)
class CandidateCredential:
    domain: str
    value: str


class CredentialDirectory(Protocol):
    def list_tokens(self, name: str = SESSION_COOKIE) -> List[CandidateCredential]:
        ...

    def get_token(self, url: str, name: str = SESSION_COOKIE) -> Optional[str]:
        ...


def strip_leading_dot(domain: str) -> str:
    return domain[1:] if domain.startswith(".") else domain


def is_platform_domain(domain: str) -> bool:
    """True for the two platform roots and anything below them."""
    domain = strip_leading_dot(domain).lower()
    return any(domain == root or domain.endswith("." + root) for root in PLATFORM_ROOTS)


def domain_matches(host: str, cookie_domain: str) -> bool:
    """RFC 6265 domain-match.

    A cookie stored with a leading dot is a domain cookie and also matches
    sub-hosts; without one it is host-only and matches exactly.
    """
    host = host.lower()
    if cookie_domain.startswith("."):
        bare = cookie_domain[1:].lower()
        return host == bare or host.endswith("." + bare)
    return host == cookie_domain.lower()


class _DomainCookieDirectory:
    """Shared lookup logic; subclasses yield ``(domain, name, value)``."""

    def _cookies(self) -> Iterator[Tuple[str, str, str]]:
        raise NotImplementedError

    def list_tokens(self, name: str = SESSION_COOKIE) -> List[CandidateCredential]:
        return [
            CandidateCredential(domain=domain, value=value)
            for domain, cookie_name, value in self._cookies()
            if cookie_name == name and is_platform_domain(domain)
        ]

    def get_token(self, url: str, name: str = SESSION_COOKIE) -> Optional[str]:
        host = urlparse(url).hostname
        if not host:
            return None
        best = None
        for domain, cookie_name, value in self._cookies():
            if cookie_name != name or not domain_matches(host, domain):
                continue
            # Most specific domain wins, as a browser would send it first.
            if best is None or len(strip_leading_dot(domain)) > len(strip_leading_dot(best[0])):
                best = (domain, value)
        return best[1] if best else None


class CookieJarDirectory(_DomainCookieDirectory):
    """Directory backed by an ``http.cookiejar`` jar."""

    def __init__(self, jar: CookieJar):
        self._jar = jar

    @classmethod
    def from_file(cls, path: Path) -> "CookieJarDirectory":
        jar = MozillaCookieJar(str(path))
        # Session cookies carry no expiry in exports, keep them.
        jar.load(ignore_discard=True, ignore_expires=True)
        logger.info("Loaded %d cookies from %s", len(jar), path)
        return cls(jar)

    def _cookies(self) -> Iterator[Tuple[str, str, str]]:
        for cookie in self._jar:
            if cookie.value is None:
                continue
            # cookiejar keeps host-only cookies without the leading dot.
            yield cookie.domain, cookie.name, cookie.value


class MemoryDirectory(_DomainCookieDirectory):
    """In-memory directory of ``(domain, name, value)`` triples."""

    def __init__(self, cookies: Iterable[Tuple[str, str, str]] = ()):
        self._entries = list(cookies)

    @classmethod
    def of_sessions(cls, tokens: Iterable[Tuple[str, str]]) -> "MemoryDirectory":
        """Build from ``(domain, value)`` pairs of session cookies."""
        return cls((domain, SESSION_COOKIE, value) for domain, value in tokens)

    def _cookies(self) -> Iterator[Tuple[str, str, str]]:
        return iter(self._entries)


class StoredSession(BaseModel):
    session_id: str = Field(alias="sessionId", min_length=1)
    href: str = Field(min_length=1)

    model_config = {"populate_by_name": True}


class StoredSessionStore:
    """Small JSON file a page observer writes ``{sessionId, href}`` into."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._memory: Optional[StoredSession] = None

    def report(self, session_id: str, href: str) -> StoredSession:
        record = StoredSession(session_id=session_id, href=href)
        self._memory = record
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(record.model_dump_json(by_alias=True), encoding="utf-8")
        return record

    def load(self) -> Optional[StoredSession]:
        if self._memory is not None:
            return self._memory
        if self.path is None or not self.path.exists():
            return None
        try:
            return StoredSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (ValidationError, OSError) as e:
            logger.warning("Ignoring unreadable stored session %s: %s", self.path, e)
            return None
