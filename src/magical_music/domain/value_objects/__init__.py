"""Value objects for the domain layer."""

from magical_music.domain.value_objects.identity import Identity
from magical_music.domain.value_objects.lifecycle import (
    ALLOWED_TRANSITIONS,
    ServerState,
    StartupPolicy,
    can_transition,
)
from magical_music.domain.value_objects.staged_file import StagedFile

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Identity",
    "ServerState",
    "StagedFile",
    "StartupPolicy",
    "can_transition",
]
