"""Persistence infrastructure."""

from magical_music.infrastructure.persistence.database import Database

__all__ = ["Database"]
