from .retention import (
    RetentionScheduler,
    SchedulerNotRunningError,
    SweepReport,
)

__all__ = [
    "RetentionScheduler",
    "SchedulerNotRunningError",
    "SweepReport",
]
