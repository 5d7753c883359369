"""Deploy a translation and poll it to a terminal state.

    BUILDING -> SUBMITTED -> POLLING -> SUCCEEDED | FAILED | TIMED_OUT

Submit strictly precedes polling and polls never overlap. Rollback-on-error
is requested in the deploy options, so nothing is undone locally. A caller
may abandon ``run`` but the remote job keeps running.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol

from sfbridge.errors import BridgeError, ComponentFailure, DeployTimeout, RemoteFault
from sfbridge.services import soap
from sfbridge.services.soap import DeployJob
from sfbridge.services.translation import TranslationPayload, build_translation_archive

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 30
DEFAULT_INTERVAL_SECONDS = 2.0

# Error kind of a finished-but-failed job, by where its message came from.
FAILURE_KINDS = {
    soap.ERROR_MESSAGE: RemoteFault.kind,
    soap.COMPONENT_PROBLEM: ComponentFailure.kind,
    soap.FAULT: RemoteFault.kind,
}


class DeployState(str, Enum):
    BUILDING = "Building"
    SUBMITTED = "Submitted"
    POLLING = "Polling"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    @property
    def terminal(self) -> bool:
        return self in (DeployState.SUCCEEDED, DeployState.FAILED, DeployState.TIMED_OUT)


class DeployApi(Protocol):
    async def deploy(self, archive: bytes) -> str: ...

    async def check_deploy_status(self, job_id: str) -> DeployJob: ...


@dataclass
class DeployOutcome:
    state: DeployState
    error: Optional[str] = None
    error_kind: Optional[str] = None
    job_id: Optional[str] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.state is DeployState.SUCCEEDED

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if not self.success:
            result["error"] = self.error
            result["kind"] = self.error_kind
        if self.job_id:
            result["job_id"] = self.job_id
        return result


class DeployOrchestrator:
    """One deploy run. Not reusable: create one per user action."""

    def __init__(self, api: DeployApi, max_attempts: int = DEFAULT_ATTEMPTS,
                 interval: float = DEFAULT_INTERVAL_SECONDS,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 api_version: str = "62.0"):
        self.api = api
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep
        self.api_version = api_version
        self.state: Optional[DeployState] = None
        self.history: List[DeployState] = []

    def _enter(self, state: DeployState) -> None:
        if self.state is not None and self.state.terminal:
            raise RuntimeError(f"deploy already finished in state {self.state.value}")
        self.state = state
        self.history.append(state)

    def _finish(self, state: DeployState, job_id: Optional[str] = None, attempts: int = 0,
                error: Optional[str] = None, error_kind: Optional[str] = None) -> DeployOutcome:
        self._enter(state)
        if state is DeployState.SUCCEEDED:
            logger.info("✅ Deploy %s succeeded after %d poll(s)", job_id, attempts)
        else:
            logger.warning("❌ Deploy %s ended %s: %s", job_id, state.value, error)
        return DeployOutcome(state=state, error=error, error_kind=error_kind, job_id=job_id, attempts=attempts)

    async def run(self, payload: TranslationPayload) -> DeployOutcome:
        self._enter(DeployState.BUILDING)
        archive = build_translation_archive(payload, self.api_version)
        logger.info("Built %d-byte package for %s", len(archive), payload.member_name)

        try:
            job_id = await self.api.deploy(archive)
        except BridgeError as e:
            return self._finish(DeployState.FAILED, error=str(e), error_kind=e.kind)
        self._enter(DeployState.SUBMITTED)
        logger.info("Deploy submitted: %s", job_id)

        self._enter(DeployState.POLLING)
        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.interval)
            try:
                job = await self.api.check_deploy_status(job_id)
            except BridgeError as e:
                return self._finish(DeployState.FAILED, job_id, attempt, str(e), e.kind)

            logger.info("Deploy %s status: %s (attempt %d/%d)", job_id, job.status or "?",
                        attempt, self.max_attempts)
            if not job.done:
                continue
            if job.success:
                return self._finish(DeployState.SUCCEEDED, job_id, attempt)
            return self._finish(DeployState.FAILED, job_id, attempt,
                                job.error_message or "Deploy failed",
                                FAILURE_KINDS.get(job.error_source, BridgeError.kind))

        return self._finish(DeployState.TIMED_OUT, job_id, self.max_attempts,
                            "Deploy timed out", DeployTimeout.kind)
