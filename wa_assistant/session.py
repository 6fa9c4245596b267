"""
Session continuity with Claude for the processor process.

The current session id lives on a SessionManager instance built once per
processor and passed into the loop. It is never shared between processes;
the only persisted trace is message_queue.session_id, which
resume_last_known() reads after a restart.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from wa_assistant.claude import InvocationOutcome
from wa_assistant.message_queue import QueueStore

log = logging.getLogger(__name__)
lifecycle_log = logging.getLogger("lifecycle")

# A session older than this is not resumed after restart
RESUME_WINDOW = timedelta(hours=1)


class Invoker(Protocol):
    def invoke(self, prompt: str, session_id: str, resume: bool = False,
               sudo: bool = False) -> InvocationOutcome: ...


class InvocationMode(enum.Enum):
    RESUME = "resume"
    NEW = "new"
    ONE_SHOT = "one_shot"


@dataclass
class InvocationResult:
    success: bool
    text: str
    session_id: Optional[str]
    error: Optional[str] = None
    retry_with_full_context: bool = False


class SessionManager:
    def __init__(self, invoker: Invoker, queue: QueueStore):
        self.invoker = invoker
        self.queue = queue
        self.current: Optional[str] = None

    @property
    def has_session(self) -> bool:
        return self.current is not None

    def resume_last_known(self, now: Optional[datetime] = None) -> Optional[str]:
        """Adopt the newest recorded session if it is less than an hour old."""
        now = now or datetime.now(timezone.utc)
        item = self.queue.latest_with_session()
        if item is None or item.created_at is None:
            log.info("No previous session, starting fresh")
            return None

        age = now - item.created_at
        if age <= RESUME_WINDOW:
            self.current = item.session_id
            lifecycle_log.info(f"SESSION_RESUMED | sid={self.current} | age={int(age.total_seconds())}s")
        else:
            log.info(f"Last session {item.session_id} is {int(age.total_seconds() // 60)} min old, starting fresh")
        return self.current

    def default_mode(self) -> InvocationMode:
        return InvocationMode.RESUME if self.current else InvocationMode.NEW

    def invoke(self, prompt: str, mode: Optional[InvocationMode] = None,
               sudo: bool = False) -> InvocationResult:
        """Run one invocation.

        RESUME continues the current session. On failure the session is
        dropped and the result asks the caller to retry once with the full
        context prompt (the caller does that with NEW). NEW starts and keeps a
        fresh session. ONE_SHOT uses a throwaway id that is never stored.
        """
        mode = mode or self.default_mode()
        if mode is InvocationMode.RESUME and not self.current:
            mode = InvocationMode.NEW

        if mode is InvocationMode.RESUME:
            session_id = self.current
            outcome = self.invoker.invoke(prompt, session_id, resume=True, sudo=sudo)
            if not outcome.success:
                lifecycle_log.info(f"SESSION_RESUME_FAILED | sid={session_id} | {outcome.error}")
                self.current = None
                return InvocationResult(False, outcome.text, session_id, outcome.error,
                                        retry_with_full_context=True)
            self.current = outcome.session_id or session_id
            return InvocationResult(True, outcome.text, self.current)

        session_id = str(uuid.uuid4())
        outcome = self.invoker.invoke(prompt, session_id, resume=False, sudo=sudo)

        if mode is InvocationMode.ONE_SHOT:
            return InvocationResult(outcome.success, outcome.text, outcome.session_id or session_id,
                                    outcome.error)

        if outcome.success:
            self.current = outcome.session_id or session_id
            lifecycle_log.info(f"SESSION_STARTED | sid={self.current}")
            return InvocationResult(True, outcome.text, self.current)

        self.current = None
        return InvocationResult(False, outcome.text, session_id, outcome.error)

    def clear(self) -> bool:
        """Drop the current session. Returns whether there was one."""
        had = self.current is not None
        if had:
            lifecycle_log.info(f"SESSION_CLEARED | sid={self.current}")
        self.current = None
        return had
