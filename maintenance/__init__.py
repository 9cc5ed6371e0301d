"""Background maintenance tasks on independent schedules."""
from maintenance.scheduler import MaintenanceScheduler
from maintenance.tasks import (
    CacheSweepTask, ConnectionPoolTuningTask, SlowQueryReportTask, MemoryCheckTask, IndexMaintenanceTask,
)
