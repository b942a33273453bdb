"""Metadata of an uploaded file that was staged on local disk."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StagedFile:
    """One file from a multipart request, already written to the temp directory.

    Handlers read `path` and are responsible for moving the file somewhere
    permanent; anything left in the temp directory is removed by the hourly sweep.
    """

    field_name: str
    filename: str
    content_type: str
    size: int
    path: Path

    @property
    def suffix(self) -> str:
        """File extension of the original filename (with leading dot, or "")."""
        return Path(self.filename).suffix
