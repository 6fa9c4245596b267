"""
Claude invocation through the Agent SDK.

One blocking call per message: prompt in, text and session id out. The
processor never talks to the SDK directly; it goes through SessionManager,
which decides whether to resume, start a new session or run one-shot.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from claude_agent_sdk import (
    query as sdk_query,
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
)

log = logging.getLogger(__name__)

# Read-only set for normal messages; "/sudo" lifts the restriction
DEFAULT_ALLOWED_TOOLS = ["Read", "Glob", "Grep", "WebSearch", "WebFetch", "mcp__*"]

ERROR_TAIL = 500


@dataclass
class InvocationOutcome:
    success: bool
    text: str
    session_id: Optional[str]
    error: Optional[str] = None


class ClaudeInvoker:
    """Runs one Claude turn per call with a hard timeout."""

    def __init__(self, cwd: Path, max_turns: int = 1000, timeout: float = 1200.0,
                 mcp_config: Optional[Path] = None):
        self.cwd = Path(cwd)
        self.max_turns = max_turns
        self.timeout = timeout
        self.mcp_config = Path(mcp_config) if mcp_config else None

    def build_options(self, session_id: str, resume: bool, sudo: bool) -> ClaudeAgentOptions:
        opts = ClaudeAgentOptions(
            cwd=str(self.cwd),
            max_turns=self.max_turns,
            permission_mode="bypassPermissions",
        )
        if not sudo:
            opts.allowed_tools = list(DEFAULT_ALLOWED_TOOLS)
        if self.mcp_config and self.mcp_config.exists():
            opts.mcp_servers = self.mcp_config

        if resume:
            opts.resume = session_id
        else:
            # Explicit id so the CLI does not auto-resume the latest session in cwd
            opts.extra_args = {"session-id": session_id}
        return opts

    async def _run(self, prompt: str, options: ClaudeAgentOptions) -> InvocationOutcome:
        text_parts: list[str] = []
        result: Optional[ResultMessage] = None

        async for message in sdk_query(prompt=prompt, options=options):
            if isinstance(message, AssistantMessage):
                for block in message.content:
                    if isinstance(block, TextBlock):
                        text_parts.append(block.text)
            elif isinstance(message, ResultMessage):
                result = message

        if result is None:
            return InvocationOutcome(False, "", None, "no result message")

        text = result.result if result.result else "\n".join(text_parts)
        if result.is_error:
            return InvocationOutcome(False, text, result.session_id, (text or "error result")[-ERROR_TAIL:])
        return InvocationOutcome(True, text.strip(), result.session_id)

    def invoke(self, prompt: str, session_id: str, resume: bool = False,
               sudo: bool = False) -> InvocationOutcome:
        """Blocking call. Timeouts and SDK errors come back as failed outcomes."""
        options = self.build_options(session_id, resume, sudo)
        mode = "resume" if resume else "new"
        log.info(f"CLAUDE | {mode} | sid={session_id} | sudo={sudo} | prompt={len(prompt)} chars")

        try:
            outcome = asyncio.run(asyncio.wait_for(self._run(prompt, options), timeout=self.timeout))
        except asyncio.TimeoutError:
            log.error(f"CLAUDE | timeout after {self.timeout}s | sid={session_id}")
            return InvocationOutcome(False, "", session_id, f"timed out after {self.timeout:.0f}s")
        except Exception as e:
            log.error(f"CLAUDE | failed | sid={session_id} | {e}")
            return InvocationOutcome(False, "", session_id, str(e)[-ERROR_TAIL:])

        if outcome.session_id is None:
            outcome.session_id = session_id
        if not outcome.success:
            log.error(f"CLAUDE | error result | sid={session_id} | {outcome.error}")
        return outcome
