"""
SessionController: the removal flow as a state machine.

  idle ──start──▶ processing ──ok──────────▶ completed
                     │      ──AuthRequired─▶ idle (+ auth_required, key prompt forced)
                     │      ──other error──▶ error ──dismiss──▶ idle
  any ──reset / new upload──▶ idle (in-flight attempt cancelled, files released)

The controller only computes states; whatever renders them subscribes via
`subscribe()` or reads `state`.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from .. import metrics
from ..presets import build_instruction
from .credentials import CredentialGate
from .errors import AuthRequired, CleanViewError, GenerationCancelled
from .extractor import MediaExtractor, aspect_ratio_for
from .generation import GenerationClient
from .models import (
    AspectRatio,
    GenerationRequest,
    ResultHandle,
    SessionStatus,
    SourceVideo,
    UIState,
)
from .storage import ResultStore

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = (
    "The AI is analysing the video and removing its text. "
    "This can take several minutes..."
)


class SessionController:
    """
    Drives one user's removal session.

    Usage:
        controller = SessionController(extractor, client, gate, store)
        controller.load_source(store.save_source(data, "clip.mp4"))
        state = await controller.start()
    """

    def __init__(
        self,
        extractor: MediaExtractor,
        client: GenerationClient,
        gate: CredentialGate,
        store: ResultStore,
    ):
        self.extractor = extractor
        self.client = client
        self.gate = gate
        self.store = store

        self._state = UIState.idle()
        self.auth_required = False
        self.source: Optional[SourceVideo] = None
        self._result: Optional[ResultHandle] = None
        self._cancel: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[UIState], None]] = []

        # Preset choice for the next attempt
        self.preset_id = "all-text"
        self.extra_instructions: Optional[str] = None

        gate.subscribe(self._on_credential_ready)

    # ── State ────────────────────────────────────────────────────────────

    @property
    def state(self) -> UIState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state.status == SessionStatus.PROCESSING

    def subscribe(self, listener: Callable[[UIState], None]):
        self._listeners.append(listener)

    def _set_state(self, state: UIState):
        self._state = state
        logger.info(f"Session → {state.status.value}" + (f" ({state.error})" if state.error else ""))
        for listener in list(self._listeners):
            listener(state)

    def _on_credential_ready(self):
        self.auth_required = False

    # ── Resources ────────────────────────────────────────────────────────

    def _cancel_inflight(self):
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None

    def _release_result(self):
        if self._result is not None:
            self.store.release(self._result)
            self._result = None

    # ── Transitions ──────────────────────────────────────────────────────

    def load_source(self, source: SourceVideo):
        """A new upload replaces everything from the previous one."""
        self._cancel_inflight()
        self._release_result()
        if self.source is not None:
            self.store.release(self.source)
        self.source = source
        self._set_state(UIState.idle())

    def configure(self, preset_id: Optional[str] = None, extra_instructions: Optional[str] = None):
        if preset_id:
            build_instruction(preset_id)  # raises ValueError on unknown presets
            self.preset_id = preset_id
        self.extra_instructions = extra_instructions

    def _aspect_ratio(self, reference) -> AspectRatio:
        if self.source is not None and self.source.aspect_ratio is not None:
            return self.source.aspect_ratio
        return aspect_ratio_for(reference)

    def _begin(self) -> Optional[asyncio.Event]:
        """Enter processing synchronously. Returns None when no attempt may start."""
        if self.is_processing:
            logger.warning("start() ignored: an attempt is already in flight")
            return None
        if self.source is None:
            logger.warning("start() ignored: no source video loaded")
            return None

        metrics.inc_counter("requests.start")
        cancel = asyncio.Event()
        self._cancel = cancel
        self._release_result()
        self._set_state(UIState.processing(PROCESSING_MESSAGE))
        return cancel

    async def start(self) -> UIState:
        """Run one attempt. No-op while processing or without a source."""
        cancel = self._begin()
        if cancel is None:
            return self._state
        return await self._run(cancel)

    async def _run(self, cancel: asyncio.Event) -> UIState:
        if cancel.is_set():
            return self._state
        try:
            reference = await self.extractor.extract(self.source.path)
            request = GenerationRequest(
                reference_image=reference,
                instruction_text=build_instruction(self.preset_id, self.extra_instructions),
                aspect_ratio=self._aspect_ratio(reference),
            )
            result = await self.client.generate(request, cancel=cancel)

        except GenerationCancelled:
            logger.info("Attempt cancelled")
        except AuthRequired:
            if not cancel.is_set():
                logger.warning("Key rejected by Veo, prompting for a new one")
                self.auth_required = True
                self.gate.force_reprompt()
                self._set_state(UIState.idle())
        except CleanViewError as e:
            if not cancel.is_set():
                self._set_state(UIState.failed(str(e)))
        except Exception as e:
            logger.error(f"Attempt failed unexpectedly: {e}", exc_info=True)
            if not cancel.is_set():
                self._set_state(UIState.failed(str(e) or e.__class__.__name__))
        else:
            # A reset may have landed while the download was in flight
            if cancel.is_set():
                self.store.release(result)
            else:
                self._result = result
                self.auth_required = False
                self._set_state(UIState.completed(result))
        finally:
            if self._cancel is cancel:
                self._cancel = None

        return self._state

    def start_background(self) -> bool:
        """Fire-and-forget wrapper for start(). Returns False if nothing was launched."""
        cancel = self._begin()
        if cancel is None:
            return False
        self._task = asyncio.create_task(self._run(cancel))
        return True

    def dismiss(self):
        """error → idle."""
        if self._state.status == SessionStatus.ERROR:
            self._set_state(UIState.idle())

    def reset(self):
        """Drop the source, the result, and any attempt still running."""
        self._cancel_inflight()
        self._release_result()
        if self.source is not None:
            self.store.release(self.source)
            self.source = None
        self._set_state(UIState.idle())

    async def close(self):
        self.reset()
        if self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)
        self.store.close()
