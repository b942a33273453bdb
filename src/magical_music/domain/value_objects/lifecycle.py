"""Server lifecycle states and startup policies.

Hey future me - the server state used to be implicit (whatever order the
startup code happened to run in). Now it is ONE enum with an explicit
transition table. Only the LifecycleController mutates it.

Fail-fast (connect-then-listen):
    starting -> db_connecting -> db_connected -> listening
                              -> db_failed -> terminated

Degraded (listen-then-connect):
    starting -> listening -> db_connecting -> db_connected | db_failed
    (the process keeps serving in both end states)

Any live state may move to shutting_down, which ends in terminated.
"""

from enum import Enum


class ServerState(str, Enum):
    """Process lifecycle state."""

    STARTING = "starting"
    DB_CONNECTING = "db_connecting"
    DB_CONNECTED = "db_connected"
    DB_FAILED = "db_failed"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class StartupPolicy(str, Enum):
    """Ordering between database connect and listener startup."""

    # Policy A: the database gates the listener. Failure exits the process.
    FAIL_FAST = "fail_fast"
    # Policy B: listen immediately, connect in the background, survive failure.
    DEGRADED = "degraded"


ALLOWED_TRANSITIONS: dict[ServerState, frozenset[ServerState]] = {
    ServerState.STARTING: frozenset(
        {ServerState.DB_CONNECTING, ServerState.LISTENING, ServerState.SHUTTING_DOWN}
    ),
    ServerState.DB_CONNECTING: frozenset(
        {ServerState.DB_CONNECTED, ServerState.DB_FAILED, ServerState.SHUTTING_DOWN}
    ),
    ServerState.DB_CONNECTED: frozenset({ServerState.LISTENING, ServerState.SHUTTING_DOWN}),
    ServerState.DB_FAILED: frozenset({ServerState.TERMINATED, ServerState.SHUTTING_DOWN}),
    ServerState.LISTENING: frozenset({ServerState.DB_CONNECTING, ServerState.SHUTTING_DOWN}),
    ServerState.SHUTTING_DOWN: frozenset({ServerState.TERMINATED}),
    ServerState.TERMINATED: frozenset(),
}


def can_transition(current: ServerState, target: ServerState) -> bool:
    """Check whether current -> target is a legal lifecycle move."""
    return target in ALLOWED_TRANSITIONS[current]
