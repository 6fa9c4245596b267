"""
Tagged-block directives embedded in assistant output.

The assistant asks for side effects by appending fenced blocks:

    ```memory_update
    {"action": "save", "category": "preference", "key": "coffee", "value": "black"}
    ```

scan() finds every block for one tag and validates its JSON against a pydantic
model. Callers apply the parsed payloads and then call replace_blocks() to swap
each block for its visible replacement (usually ""). Blocks that fail to parse
are reported with an error and still removed.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ValidationError, field_validator

log = logging.getLogger(__name__)

MEMORY_TAG = "memory_update"
SEND_TAG = "send_message"

MEMORY_CATEGORIES = ("preference", "fact", "project", "person")

M = TypeVar("M", bound=BaseModel)


class MemoryDirective(BaseModel):
    action: Literal["save", "delete"]
    key: str
    value: Optional[str] = None
    category: Optional[str] = None

    @field_validator("key")
    @classmethod
    def _key_present(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("key is empty")
        return v

    @field_validator("value")
    @classmethod
    def _blank_value_is_missing(cls, v: Optional[str]) -> Optional[str]:
        # A blank value is treated like no value, so a save is skipped
        return v if v and v.strip() else None

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: Optional[str]) -> Optional[str]:
        # Unknown categories fall back to the store default
        return v if v in MEMORY_CATEGORIES else None


class SendDirective(BaseModel):
    to: str
    message: str

    @field_validator("to", mode="before")
    @classmethod
    def _phone_as_text(cls, v):
        # The assistant sometimes emits the number as a JSON int
        return str(v) if isinstance(v, int) else v

    @field_validator("message")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message is empty")
        return v


@dataclass
class Directive(Generic[M]):
    """One fenced block found in the text."""
    raw: str
    payload: Optional[M] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def _block_pattern(tag: str) -> re.Pattern:
    return re.compile(r"```" + re.escape(tag) + r"\s*\n?(.*?)```", re.DOTALL)


def scan(text: str, tag: str, model: type[M]) -> list[Directive[M]]:
    """Find all ```<tag> blocks in text and parse each into model."""
    found = []
    for match in _block_pattern(tag).finditer(text):
        raw = match.group(0)
        body = match.group(1).strip()
        try:
            payload = model.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as e:
            log.warning(f"Invalid {tag} block: {e}")
            found.append(Directive(raw=raw, error=str(e)))
            continue
        found.append(Directive(raw=raw, payload=payload))
    return found


def replace_blocks(text: str, replacements: list[tuple[Directive, str]]) -> str:
    """Replace each directive's raw block with its replacement; trims the result."""
    for directive, replacement in replacements:
        text = text.replace(directive.raw, replacement, 1)
    return text.strip()


def strip_blocks(text: str, directives: list[Directive]) -> str:
    return replace_blocks(text, [(d, "") for d in directives])
