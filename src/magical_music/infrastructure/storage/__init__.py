"""Local filesystem storage."""

from magical_music.infrastructure.storage.temp_uploads import SweepResult, TempUploadDirectory

__all__ = ["SweepResult", "TempUploadDirectory"]
