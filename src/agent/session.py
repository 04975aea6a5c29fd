"""
src/agent/session.py
One bounded-time agent conversation, driven as an explicit state machine.

CREATED -> SENDING -> (STREAMING)* -> COMPLETED | TIMED_OUT | ERRORED, and
every path ends in RELEASED via `close()` (the context manager exit).
Exports: SessionState, SessionEvent, AgentSession, AgentSessionError, AgentTimeoutError
"""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AgentSessionError(RuntimeError):
    """The agent runtime failed to produce a response."""


class AgentTimeoutError(AgentSessionError):
    """The agent did not finish within the session timeout."""


class SessionState(str, Enum):
    CREATED = "created"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    RELEASED = "released"


TERMINAL_STATES = {SessionState.COMPLETED, SessionState.TIMED_OUT, SessionState.ERRORED}


@dataclass(frozen=True)
class SessionEvent:
    """Incremental event: delta, tool_start, error or idle."""

    type: str
    content: str = ""
    tool_name: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AgentSession:
    """
    Runs a blocking kickoff on a daemon worker thread and waits up to `timeout_seconds`.

    On timeout the worker cannot be interrupted; the session is released,
    its result is discarded and late callbacks are dropped. Tools built with
    `active` as their gate refuse to run once the session is no longer live.
    """

    def __init__(self, label: str, *, timeout_seconds: float) -> None:
        self.label = label
        self.timeout_seconds = timeout_seconds
        self.events: list[SessionEvent] = []
        self._state = SessionState.CREATED
        self._future: Future[Any] | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def released(self) -> bool:
        return self._state is SessionState.RELEASED

    @property
    def active(self) -> bool:
        """True only while a kickoff is in flight and its result is still wanted."""
        return self._state in {SessionState.SENDING, SessionState.STREAMING}

    def __enter__(self) -> "AgentSession":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()

    def _record(self, event: SessionEvent) -> None:
        with self._lock:
            if self._state in TERMINAL_STATES or self._state is SessionState.RELEASED:
                return
            if event.type in {"delta", "tool_start"} and self._state is SessionState.SENDING:
                self._state = SessionState.STREAMING
            self.events.append(event)
        if event.type == "tool_start":
            logger.info("[%s] tool started: %s", self.label, event.tool_name)
        else:
            logger.debug("[%s] %s: %s", self.label, event.type, event.content[:200])

    def _finish(self, state: SessionState, event: SessionEvent) -> None:
        with self._lock:
            if self._state is SessionState.RELEASED:
                return
            self.events.append(event)
            self._state = state

    def step_callback(self, step_output: Any) -> None:
        """CrewAI step callback: agent thoughts become deltas, tool use becomes tool_start."""
        tool_name = str(getattr(step_output, "tool", "") or "")
        content = ""
        for attr in ("text", "output", "result", "log"):
            value = getattr(step_output, attr, None)
            if value:
                content = str(value)
                break
        if tool_name:
            self._record(SessionEvent("tool_start", content=content, tool_name=tool_name))
        else:
            self._record(SessionEvent("delta", content=content or str(step_output)[:500]))

    def task_callback(self, task_output: Any) -> None:
        raw = str(getattr(task_output, "raw", "") or "")
        self._record(SessionEvent("delta", content=raw[:500]))

    def crew_callbacks(self) -> dict[str, Callable[[Any], None]]:
        return {"step_callback": self.step_callback, "task_callback": self.task_callback}

    def send_and_wait(self, kickoff: Callable[[], Any]) -> Any:
        """
        Start the kickoff and block until it completes or the timeout elapses.

        Args:
            kickoff: Zero-argument callable producing the agent response.
        Returns:
            The kickoff result.
        Raises:
            AgentTimeoutError: No result within `timeout_seconds`.
            AgentSessionError: The kickoff raised, or the session is not fresh.
        """
        with self._lock:
            if self._state is not SessionState.CREATED:
                raise AgentSessionError(f"Session {self.label} cannot send from state {self._state.value}")
            self._state = SessionState.SENDING
            future: Future[Any] = Future()
            self._future = future

        def _worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(kickoff())
            except BaseException as exc:
                future.set_exception(exc)

        threading.Thread(target=_worker, name=f"agent-session-{self.label}", daemon=True).start()
        try:
            result = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            self._finish(SessionState.TIMED_OUT, SessionEvent("error", content="timeout"))
            raise AgentTimeoutError(
                f"Agent session {self.label} timed out after {self.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            self._finish(SessionState.ERRORED, SessionEvent("error", content=str(exc)))
            raise AgentSessionError(f"Agent session {self.label} failed: {exc}") from exc
        self._finish(SessionState.COMPLETED, SessionEvent("idle"))
        return result

    def close(self) -> None:
        """Release the session; idempotent and safe from any state."""
        with self._lock:
            if self._state is SessionState.RELEASED:
                return
            previous = self._state
            if self._future is not None:
                self._future.cancel()
            self._state = SessionState.RELEASED
        logger.debug("[%s] session released (was %s).", self.label, previous.value)
