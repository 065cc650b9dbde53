"""arq worker settings module.

Import path for arq CLI: arq rac.workers.settings.WorkerSettings
"""

from __future__ import annotations

from rac.workers.scheduler import SchedulerWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]
