"""Tests for the server state transition table."""

import pytest

from magical_music.domain.value_objects import ALLOWED_TRANSITIONS, ServerState, can_transition


class TestTransitions:
    """The table allows exactly the documented startup paths."""

    @pytest.mark.parametrize(
        "path",
        [
            # connect-then-listen
            [ServerState.STARTING, ServerState.DB_CONNECTING, ServerState.DB_CONNECTED, ServerState.LISTENING],
            # connect fails, process ends
            [ServerState.STARTING, ServerState.DB_CONNECTING, ServerState.DB_FAILED, ServerState.TERMINATED],
            # listen-then-connect
            [ServerState.STARTING, ServerState.LISTENING, ServerState.DB_CONNECTING, ServerState.DB_CONNECTED],
            [ServerState.LISTENING, ServerState.SHUTTING_DOWN, ServerState.TERMINATED],
        ],
    )
    def test_documented_paths_allowed(self, path: list[ServerState]) -> None:
        for current, target in zip(path, path[1:], strict=False):
            assert can_transition(current, target), f"{current} -> {target}"

    def test_terminated_is_final(self) -> None:
        assert not ALLOWED_TRANSITIONS[ServerState.TERMINATED]
        for target in ServerState:
            assert not can_transition(ServerState.TERMINATED, target)

    def test_cannot_listen_after_database_failure(self) -> None:
        assert not can_transition(ServerState.DB_FAILED, ServerState.LISTENING)

    def test_cannot_skip_connecting(self) -> None:
        assert not can_transition(ServerState.STARTING, ServerState.DB_CONNECTED)

    def test_every_state_has_an_entry(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(ServerState)
