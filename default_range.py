import datetime
import logging
from typing import List, Optional, Tuple

from models import Workout

logger = logging.getLogger(__name__)


def years_before(day: datetime.date, years: int) -> datetime.date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


class DefaultRangeInitializer:
    """Derive the date-range picker defaults once from the first listing.

    The first paginated result holding at least one workout fixes the range
    to ``[latest - years, latest]``. Later calls never change it.
    """

    def __init__(self, years: int = 1) -> None:
        if years < 1:
            raise ValueError("years must be positive")
        self.years = years
        self.fired = False
        self.range: Optional[Tuple[datetime.date, datetime.date]] = None

    def observe(self, workouts: List[Workout]) -> Optional[Tuple[datetime.date, datetime.date]]:
        """Return the new default range the first time, otherwise ``None``."""
        if self.fired or not workouts:
            return None
        latest = max(w.date for w in workouts).date()
        self.range = (years_before(latest, self.years), latest)
        self.fired = True
        logger.debug("default range set to %s..%s", *self.range)
        return self.range
