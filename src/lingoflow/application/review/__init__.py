# Application Review Package
from .service import ReviewScheduler
from .sm2 import ScheduleStep, compute_schedule

__all__ = ["ReviewScheduler", "ScheduleStep", "compute_schedule"]
