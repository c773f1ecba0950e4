from dataclasses import dataclass
from datetime import datetime

from dateutil.relativedelta import relativedelta


@dataclass(frozen=True)
class DailySchedule:
    """Fires every day at ``hour:minute``."""
    hour: int
    minute: int = 0

    def next_fire(self, now: datetime) -> datetime:
        candidate = now + relativedelta(hour=self.hour, minute=self.minute,
                                        second=0, microsecond=0)
        if candidate <= now:
            candidate += relativedelta(days=1)
        return candidate


@dataclass(frozen=True)
class MonthlySchedule:
    """Fires on ``day`` of every month at ``hour:minute``."""
    day: int
    hour: int
    minute: int = 0

    def next_fire(self, now: datetime) -> datetime:
        # relativedelta clamps day to the month's last day
        candidate = now + relativedelta(day=self.day, hour=self.hour, minute=self.minute,
                                        second=0, microsecond=0)
        if candidate <= now:
            candidate = now + relativedelta(months=1, day=self.day, hour=self.hour,
                                            minute=self.minute, second=0, microsecond=0)
        return candidate
