"""Domain models for userfinder.

All models use Pydantic v2 for validation and serialization.
"""

from userfinder.domain.models import (
    CommandDecodeError,
    ListenerState,
    LookupCommand,
    decode_lookup_command,
)

__all__ = [
    "CommandDecodeError",
    "ListenerState",
    "LookupCommand",
    "decode_lookup_command",
]
