"""Background workers."""

from magical_music.application.workers.maintenance_worker import MaintenanceWorker

__all__ = ["MaintenanceWorker"]
