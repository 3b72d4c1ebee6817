"""Application state — one upload at a time, findings replaced wholesale."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum

from armp.errors import GENERIC_FAILURE_MESSAGE, IngestError, IngestInProgressError
from armp.pipeline import FindingSet, ingest

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Processing was interrupted. Please upload the file again."


class SessionPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class AppView(str, Enum):
    DASHBOARD = "Dashboard"
    FINDINGS = "Findings"
    LEADERBOARD = "Leaderboard"


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot published to subscribers on every transition."""

    phase: SessionPhase = SessionPhase.IDLE
    findings: FindingSet = ()
    error: str | None = None
    error_type: type[Exception] | None = None
    file_name: str = ""
    view: AppView = AppView.DASHBOARD


Listener = Callable[[SessionState], None]


class IngestSession:
    """Holds the current :class:`SessionState` and drives its transitions.

    ``IDLE -> LOADING -> READY | FAILED``; a READY or FAILED session may start
    a new upload. Starting an upload while LOADING raises
    :class:`IngestInProgressError` and leaves the in-flight upload alone.
    """

    def __init__(self) -> None:
        self._state = SessionState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, state: SessionState) -> SessionState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    # ── Transitions ──────────────────────────────────────────────

    def begin(self, file_name: str) -> SessionState:
        if self._state.phase is SessionPhase.LOADING:
            raise IngestInProgressError(self._state.file_name)
        logger.info("Processing %s", file_name)
        return self._publish(
            replace(
                self._state,
                phase=SessionPhase.LOADING,
                findings=(),
                error=None,
                error_type=None,
                file_name=file_name,
            )
        )

    def complete(self, findings: FindingSet) -> SessionState:
        if self._state.phase is not SessionPhase.LOADING:
            raise RuntimeError(f"Cannot complete an upload from phase {self._state.phase.value}")
        logger.info("Loaded %d findings from %s", len(findings), self._state.file_name)
        return self._publish(
            replace(self._state, phase=SessionPhase.READY, findings=tuple(findings))
        )

    def fail(self, message: str, error_type: type[Exception] | None = None) -> SessionState:
        if self._state.phase is not SessionPhase.LOADING:
            raise RuntimeError(f"Cannot fail an upload from phase {self._state.phase.value}")
        logger.warning("Failed to process %s: %s", self._state.file_name, message)
        return self._publish(
            replace(
                self._state,
                phase=SessionPhase.FAILED,
                findings=(),
                error=message,
                error_type=error_type,
            )
        )

    def select_view(self, view: AppView) -> SessionState:
        return self._publish(replace(self._state, view=AppView(view)))

    # ── Upload ───────────────────────────────────────────────────

    def load_bytes(self, file_name: str, data: bytes) -> SessionState:
        """Run a complete synchronous upload of already-read *data*."""
        self.begin(file_name)
        return self._finish(file_name, data)

    async def upload(self, file_name: str, read: Callable[[], Awaitable[bytes]]) -> SessionState:
        """Await *read* for the file bytes, then ingest them.

        Never raises for a bad file; the outcome is in the returned state.
        Cancellation and interrupts still propagate, after the session has
        moved to FAILED so a later upload is accepted.
        """
        self.begin(file_name)
        try:
            data = await read()
        except IngestError as exc:
            return self.fail(str(exc), type(exc))
        except OSError as exc:
            logger.debug("Read of %s failed", file_name, exc_info=True)
            return self.fail("Failed to read the file.", type(exc))
        except Exception:
            logger.exception("Unexpected error while reading %s", file_name)
            return self.fail(GENERIC_FAILURE_MESSAGE)
        except BaseException:
            self.fail(INTERRUPTED_MESSAGE)
            raise
        return self._finish(file_name, data)

    def _finish(self, file_name: str, data: bytes) -> SessionState:
        try:
            findings = ingest(data, file_name)
        except IngestError as exc:
            return self.fail(str(exc), type(exc))
        except Exception:
            logger.exception("Unexpected error while processing %s", file_name)
            return self.fail(GENERIC_FAILURE_MESSAGE)
        except BaseException:
            self.fail(INTERRUPTED_MESSAGE)
            raise
        return self.complete(findings)
