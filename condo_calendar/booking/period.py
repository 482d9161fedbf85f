# Date interval class used for visit containment checks on the calendar
from datetime import date


"""
Defined as a pair of date objects. Both ends are inclusive: a visit from the 3rd to the 5th occupies the 3rd, 4th and 5th.
"""
class Period:

    def __init__(self, begin_period: date, end_period: date):
        if end_period < begin_period:
            raise ValueError(f"Period ends ({end_period}) before it begins ({begin_period})")
        self._begin_period = begin_period
        self._end_period = end_period

    @property
    def begin_period(self) -> date:
        return self._begin_period

    @property
    def end_period(self) -> date:
        return self._end_period

    def contains(self, day: date) -> bool:
        return self._begin_period <= day <= self._end_period

    def overlaps(self, begin: date, end: date) -> bool:
        """True if any day of this period falls within [begin, end]."""
        return self._begin_period <= end and begin <= self._end_period

    def __eq__(self, other):
        if not isinstance(other, Period):
            return NotImplemented
        return (self._begin_period, self._end_period) == (other._begin_period, other._end_period)

    def __repr__(self):
        return f"Period({self._begin_period.isoformat()}, {self._end_period.isoformat()})"
