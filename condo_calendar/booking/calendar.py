"""
Month calendar for the condo reservation view.

A visit occupies every day from its start date to its end date, both inclusive.
Each day cell of the month grid shows every visit whose period contains that day, stacked in start date order and
colored by visitor. Overlapping visits are not resolved, only drawn on top of each other.

The grid always covers whole weeks: it starts on the Sunday on or before the 1st and ends on the Saturday on or after
the last day of the month, so the leading and trailing days of the neighbouring months are shown as well.
"""
import calendar
from dataclasses import dataclass, field
from datetime import MAXYEAR, MINYEAR, date
from typing import Dict, Iterable, List, Optional

from .models import DEFAULT_COLOR, Visit, VisitStatus, Visitor

VISITOR_COLORS = [
    '#3b82f6',  # blue
    '#10b981',  # green
    '#f59e0b',  # amber
    '#ef4444',  # red
    '#8b5cf6',  # violet
    '#ec4899',  # pink
    '#06b6d4',  # cyan
    '#f97316',  # orange
]

DAY_NAMES = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']

# Denied visits are never drawn
VISIBLE_STATUSES = (VisitStatus.PENDING, VisitStatus.CONFIRMED)


def assign_colors(visitors: Iterable[Visitor]) -> List[Visitor]:
    """
    Colors visitors by position in name order. Input order is kept as given, callers fetch visitors ordered by name.
    """
    colored = []
    for idx, visitor in enumerate(visitors):
        visitor.color = VISITOR_COLORS[idx % len(VISITOR_COLORS)]
        colored.append(visitor)
    return colored


def color_visits(visits: Iterable[Visit], visitors: Iterable[Visitor]) -> List[Visit]:
    by_id = {visitor.id: visitor for visitor in visitors}
    visits = list(visits)
    for visit in visits:
        visitor = by_id.get(visit.visitor_id)
        visit.color = visitor.color if visitor else DEFAULT_COLOR
        if visitor and visit.visitor_name == 'Unknown':
            visit.visitor_name = visitor.name
    return visits


def shift_month(month: date, months: int) -> date:
    """Returns the first day of the month `months` away from `month`."""
    index = month.year * 12 + (month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def parse_month(value: Optional[str], default: date) -> date:
    """Parses a YYYY-MM query value, falling back to the month of `default`."""
    if value:
        try:
            year, month = value.split('-')[:2]
            # The grid and the month links need room on both sides of the year
            if MINYEAR < int(year) < MAXYEAR:
                return date(int(year), int(month), 1)
        except ValueError:
            pass
    return default.replace(day=1)


@dataclass
class VisitBar:
    visit: Visit
    is_start: bool
    is_end: bool

    def to_dict(self) -> Dict:
        return {**self.visit.to_dict(), 'is_start': self.is_start, 'is_end': self.is_end}


@dataclass
class DayCell:
    day: date
    in_month: bool
    is_today: bool
    bars: List[VisitBar] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {'date': self.day.isoformat(),
                'in_month': self.in_month,
                'is_today': self.is_today,
                'visits': [bar.to_dict() for bar in self.bars]}


class BookingCalendar:

    def __init__(self, visits: Iterable[Visit], month: date, today: date):
        self.month = month.replace(day=1)
        self.today = today
        self._calendar = calendar.Calendar(firstweekday=calendar.SUNDAY)
        self._weeks = self._calendar.monthdatescalendar(self.month.year, self.month.month)
        self.visits = sorted((visit for visit in visits if visit.status in VISIBLE_STATUSES),
                             key=lambda visit: (visit.start_date, visit.end_date))

    @property
    def title(self) -> str:
        return f"{calendar.month_name[self.month.month]} {self.month.year}"

    @property
    def grid_start(self) -> date:
        return self._weeks[0][0]

    @property
    def grid_end(self) -> date:
        return self._weeks[-1][-1]

    @property
    def previous_month(self) -> date:
        return shift_month(self.month, -1)

    @property
    def next_month(self) -> date:
        return shift_month(self.month, 1)

    def visits_in_view(self) -> List[Visit]:
        """Visits overlapping any day of the displayed grid, including the neighbouring months' days."""
        return [visit for visit in self.visits if visit.period.overlaps(self.grid_start, self.grid_end)]

    def visits_for_day(self, day: date, visits: Optional[List[Visit]] = None) -> List[Visit]:
        return [visit for visit in (visits if visits is not None else self.visits) if visit.period.contains(day)]

    def weeks(self) -> List[List[DayCell]]:
        in_view = self.visits_in_view()
        rows = []
        for week in self._weeks:
            cells = []
            for day in week:
                bars = [VisitBar(visit, day == visit.start_date, day == visit.end_date)
                        for visit in self.visits_for_day(day, in_view)]
                cells.append(DayCell(day, day.month == self.month.month, day == self.today, bars))
            rows.append(cells)
        return rows

    def to_dict(self) -> Dict:
        return {'month': self.month.strftime('%Y-%m'),
                'title': self.title,
                'previous_month': self.previous_month.strftime('%Y-%m'),
                'next_month': self.next_month.strftime('%Y-%m'),
                'grid_start': self.grid_start.isoformat(),
                'grid_end': self.grid_end.isoformat(),
                'weeks': [[cell.to_dict() for cell in week] for week in self.weeks()]}
