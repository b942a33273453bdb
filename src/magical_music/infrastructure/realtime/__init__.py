"""Realtime messaging over WebSockets."""

from magical_music.infrastructure.realtime.hub import RealtimeEnvelope, RealtimeHub

__all__ = ["RealtimeEnvelope", "RealtimeHub"]
