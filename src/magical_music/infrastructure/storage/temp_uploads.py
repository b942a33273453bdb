"""Temporary upload directory shared by upload staging and the maintenance sweep.

Layout (default, relative to the working directory):

    tmp/
        .incoming/          <- files still being written (swept only once stale)
        3f2a...c1.mp3       <- completed uploads waiting for their handler
        9b7e...04.jpg

Hey future me - the sweep used to race in-flight uploads (it deleted whatever
it found, including half-written files). Uploads are now written under
.incoming and only moved into tmp/ once complete, and the sweep skips every
subdirectory except for one pass over .incoming: staged files left behind by a
killed request are removed once nobody has written to them for
stale_staging_seconds. The sweep is still unconditional for completed files
unless min_age_seconds is set.
"""

import logging
import os
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep run."""

    removed: int = 0
    failed: int = 0
    skipped: int = 0
    aborted: bool = False


class TempUploadDirectory:
    """Owns the temp upload directory: creation, staging paths and sweeping."""

    def __init__(
        self,
        root: Path,
        staging_dir_name: str = ".incoming",
        min_age_seconds: int = 0,
        stale_staging_seconds: int = 3600,
    ) -> None:
        self.root = root
        self.staging_dir = root / staging_dir_name
        self.min_age_seconds = min_age_seconds
        self.stale_staging_seconds = stale_staging_seconds

    def ensure(self) -> Path:
        """Create the temp and staging directories if missing (idempotent)."""
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        return self.root

    def new_staging_path(self) -> Path:
        """Unique path inside the staging area for a file about to be written."""
        return self.staging_dir / f"{uuid.uuid4().hex}.part"

    def promote(self, staging_path: Path, suffix: str = "") -> Path:
        """Move a fully written file from staging into the temp directory."""
        final_path = self.root / f"{staging_path.stem}{suffix}"
        os.replace(staging_path, final_path)
        return final_path

    def discard(self, path: Path) -> None:
        """Best-effort removal of a staged or promoted file."""
        with suppress(OSError):
            path.unlink()

    def sweep(self) -> SweepResult:
        """Delete every completed file in the temp directory.

        Blocking; the maintenance worker runs it in a thread. A missing directory
        is a no-op. A listing error is logged and aborts this run. Per-file
        deletion errors are ignored (the file is retried by the next run anyway).
        """
        if not self.root.exists():
            return SweepResult()

        try:
            entries = list(os.scandir(self.root))
        except OSError as e:
            logger.error("Temp directory sweep failed to list %s: %s", self.root, e)
            return SweepResult(aborted=True)

        cutoff = time.time() - self.min_age_seconds if self.min_age_seconds else None
        removed = failed = skipped = 0
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    skipped += 1
                    continue
                if cutoff is not None and entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    skipped += 1
                    continue
                os.unlink(entry.path)
                removed += 1
            except OSError:
                failed += 1

        stale_removed, stale_failed = self._sweep_stale_staging()
        return SweepResult(
            removed=removed + stale_removed, failed=failed + stale_failed, skipped=skipped
        )

    def _sweep_stale_staging(self) -> tuple[int, int]:
        """Delete staged partial files nobody has written to for a while.

        An upload that is still streaming touches its file on every chunk, so only
        files abandoned by a crashed or killed request get this old.
        """
        try:
            entries = list(os.scandir(self.staging_dir))
        except FileNotFoundError:
            return 0, 0
        except OSError as e:
            logger.warning("Could not list staging directory %s: %s", self.staging_dir, e)
            return 0, 0

        cutoff = time.time() - self.stale_staging_seconds
        removed = failed = 0
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    continue
                os.unlink(entry.path)
                removed += 1
            except OSError:
                failed += 1
        if removed:
            logger.info("Removed %d abandoned partial upload(s) from staging", removed)
        return removed, failed
