"""
Step 2, the clean-up: one Veo generation attempt from submit to local file.

  submit → poll every POLL_INTERVAL until done → resolve the video URI
         → download (key appended) → store locally → ResultHandle

Outcomes are three-way: a ResultHandle, AuthRequired (the key was rejected,
the caller should re-prompt), or some other CleanViewError whose message is
shown to the user.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol

from .. import metrics
from ..config import MAX_POLL_ATTEMPTS, POLL_INTERVAL
from .errors import (
    AuthRequired,
    CleanViewError,
    GenerationCancelled,
    GenerationFailed,
    GenerationTimeout,
    NoResult,
)
from .models import GenerationJob, GenerationRequest, JobError, ResultHandle
from .storage import ResultStore

logger = logging.getLogger(__name__)

# Upstream statuses that mean "this key cannot be used for this model".
AUTH_STATUSES = {"NOT_FOUND", "PERMISSION_DENIED", "UNAUTHENTICATED"}
AUTH_HTTP_CODES = {401, 403}
# Fallback for transports that only surface a message.
AUTH_MESSAGE = "Requested entity was not found"


class GenerationService(Protocol):
    async def submit(self, request: GenerationRequest) -> GenerationJob: ...

    async def refresh(self, job: GenerationJob) -> GenerationJob: ...

    async def fetch_result(self, uri: str) -> bytes: ...


def _is_auth_failure(status: str, code: Optional[int], message: str) -> bool:
    if status in AUTH_STATUSES:
        return True
    if code in AUTH_HTTP_CODES:
        return True
    return AUTH_MESSAGE in (message or "")


def classify_error(exc: Exception) -> CleanViewError:
    """Map any failure from the service onto AuthRequired or GenerationFailed."""
    if isinstance(exc, CleanViewError):
        return exc

    status = getattr(exc, "status", "") or ""
    code = getattr(exc, "http_status", None)
    message = str(exc)
    if _is_auth_failure(status, code, message):
        return AuthRequired()
    return GenerationFailed(message or exc.__class__.__name__)


def _job_failure(error: JobError) -> GenerationFailed:
    """A finished operation without a video is a failed attempt, never an auth problem."""
    return GenerationFailed(error.message or f"Video generation failed ({error.status or error.code})")


class GenerationClient:
    def __init__(
        self,
        service: GenerationService,
        store: ResultStore,
        poll_interval: float = POLL_INTERVAL,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
    ):
        self.service = service
        self.store = store
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    async def _wait(self, cancel: Optional[asyncio.Event]):
        if cancel is None:
            await asyncio.sleep(self.poll_interval)
            return
        self._check_cancel(cancel)
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return
        raise GenerationCancelled("Generation cancelled")

    @staticmethod
    def _check_cancel(cancel: Optional[asyncio.Event]):
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled("Generation cancelled")

    async def _poll_until_done(self, job: GenerationJob, cancel: Optional[asyncio.Event]) -> GenerationJob:
        polls = 0
        while not job.done:
            if polls >= self.max_poll_attempts:
                raise GenerationTimeout(
                    f"Video generation timed out after {polls * self.poll_interval:.0f}s"
                )
            await self._wait(cancel)
            job = await self.service.refresh(job)
            polls += 1
            metrics.inc_counter("generation.polls")
            logger.info(f"Veo poll #{polls}: done={job.done}")
        return job

    async def generate(
        self, request: GenerationRequest, cancel: Optional[asyncio.Event] = None
    ) -> ResultHandle:
        """
        Run one attempt to completion.

        Args:
            request: Immutable request for this attempt.
            cancel:  Set to abandon the attempt; checked before submit,
                     during every poll wait, and before download.

        Returns:
            ResultHandle for the downloaded video. The caller owns it.

        Raises:
            AuthRequired, GenerationFailed, NoResult, GenerationTimeout,
            GenerationCancelled.
        """
        started = time.time()
        try:
            self._check_cancel(cancel)
            job = await self.service.submit(request)
            metrics.inc_counter("generation.submitted")

            job = await self._poll_until_done(job, cancel)

            if job.error is not None:
                raise _job_failure(job.error)
            if not job.result_uri:
                raise NoResult()

            self._check_cancel(cancel)
            data = await self.service.fetch_result(job.result_uri)
            self._check_cancel(cancel)
        except Exception as e:
            err = classify_error(e)
            if not isinstance(err, GenerationCancelled):
                logger.error(f"Veo generation failed: {e}")
                metrics.record_error("generate", type(err).__name__, str(err))
            if err is e:
                raise
            raise err from e

        handle = self.store.save_result(data, source_uri=job.result_uri)
        metrics.inc_counter("generation.completed")
        metrics.record_latency("generate", (time.time() - started) * 1000)
        logger.info(f"Generation complete in {time.time() - started:.1f}s: {handle.path}")
        return handle
