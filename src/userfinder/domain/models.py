"""Core domain models for the userfinder service.

``LookupCommand`` is the decoded request payload of the display-name
lookup route. ``ListenerState`` tracks where the HTTP listener is in its
lifecycle.
"""

from __future__ import annotations

import enum
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

DISPLAY_NAME_KEY = "DisplayName"


class ListenerState(str, enum.Enum):
    """Lifecycle state of the HTTP listener."""

    CREATED = "created"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class LookupCommand(BaseModel):
    """Request to find a user by display name.

    On the wire the field is ``DisplayName``; use ``decode_lookup_command``
    to build one from a request body.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    display_name: str = Field(default="", alias=DISPLAY_NAME_KEY, strict=True)


class CommandDecodeError(Exception):
    """Raised when a request body cannot be decoded into a LookupCommand."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class _JsonObject(dict):
    """Decoded JSON object that remembers every key/value pair in document order."""

    def __init__(self, pairs: list[tuple[str, Any]]) -> None:
        super().__init__(pairs)
        self.pairs = pairs


_decoder = json.JSONDecoder(object_pairs_hook=_JsonObject)


def _first_json_value(body: bytes | str) -> Any:
    """Decode the first JSON value of ``body``; anything after it is ignored."""
    text = body.decode("utf-8") if isinstance(body, bytes) else body
    value, _ = _decoder.raw_decode(text.lstrip(" \t\n\r"))
    return value


def _select_display_name(data: Any) -> Any:
    """Reduce a decoded JSON object to its ``DisplayName`` entry.

    Keys match ``DisplayName`` case-insensitively and are applied in document
    order, so the last matching key wins. ``null`` values leave the field
    unset. Non-objects pass through for the model to reject.
    """
    if not isinstance(data, _JsonObject):
        return data
    selected: dict[str, Any] = {}
    for key, value in data.pairs:
        if key.lower() == DISPLAY_NAME_KEY.lower() and value is not None:
            selected[DISPLAY_NAME_KEY] = value
    return selected


def decode_lookup_command(body: bytes | str) -> LookupCommand:
    """Decode a raw JSON request body into a LookupCommand.

    Raises:
        CommandDecodeError: If the body does not start with a JSON object,
            or its ``DisplayName`` is neither a string nor null.
    """
    try:
        data = _first_json_value(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CommandDecodeError(
            "Invalid lookup command: 1 error(s)",
            errors=[{
                "type": "json_invalid",
                "loc": (),
                "msg": f"Invalid JSON: {e}",
                "ctx": {"error": str(e)},
            }],
        ) from e
    try:
        return LookupCommand.model_validate(_select_display_name(data))
    except ValidationError as e:
        raise CommandDecodeError(
            f"Invalid lookup command: {e.error_count()} error(s)",
            errors=e.errors(include_url=False, include_input=False),
        ) from e
