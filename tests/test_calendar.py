import unittest
import os
import sys
from datetime import date
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from condo_calendar.booking.calendar import (BookingCalendar, VISITOR_COLORS, assign_colors, color_visits,
                                             parse_month, shift_month)
from condo_calendar.booking.models import DEFAULT_COLOR, Visit, VisitStatus, Visitor
from condo_calendar.booking.period import Period


def make_visit(visit_id, start, end, status=VisitStatus.CONFIRMED, visitor_id='v1'):
    return Visit(id=visit_id, visitor_id=visitor_id, start_date=start, end_date=end, status=status)


class PeriodTest(unittest.TestCase):

    def test_both_ends_inclusive(self):
        period = Period(date(2024, 3, 3), date(2024, 3, 5))
        self.assertTrue(period.contains(date(2024, 3, 3)))
        self.assertTrue(period.contains(date(2024, 3, 5)))
        self.assertFalse(period.contains(date(2024, 3, 2)))
        self.assertFalse(period.contains(date(2024, 3, 6)))

    def test_single_day(self):
        period = Period(date(2024, 3, 3), date(2024, 3, 3))
        self.assertTrue(period.contains(date(2024, 3, 3)))

    def test_end_before_begin(self):
        with self.assertRaises(ValueError):
            Period(date(2024, 3, 5), date(2024, 3, 3))

    def test_overlaps(self):
        period = Period(date(2024, 3, 3), date(2024, 3, 5))
        self.assertTrue(period.overlaps(date(2024, 3, 5), date(2024, 3, 9)))
        self.assertTrue(period.overlaps(date(2024, 3, 1), date(2024, 3, 3)))
        self.assertTrue(period.overlaps(date(2024, 3, 4), date(2024, 3, 4)))
        self.assertFalse(period.overlaps(date(2024, 3, 6), date(2024, 3, 9)))


class MonthHelpersTest(unittest.TestCase):

    def test_shift_month_across_years(self):
        self.assertEqual(shift_month(date(2024, 1, 1), -1), date(2023, 12, 1))
        self.assertEqual(shift_month(date(2024, 12, 1), 1), date(2025, 1, 1))
        self.assertEqual(shift_month(date(2024, 3, 1), 14), date(2025, 5, 1))

    def test_parse_month(self):
        today = date(2024, 3, 17)
        self.assertEqual(parse_month('2024-07', today), date(2024, 7, 1))
        self.assertEqual(parse_month(None, today), date(2024, 3, 1))
        self.assertEqual(parse_month('2024-13', today), date(2024, 3, 1))
        self.assertEqual(parse_month('july', today), date(2024, 3, 1))

    def test_parse_month_outside_supported_years(self):
        today = date(2024, 3, 17)
        self.assertEqual(parse_month('9999-12', today), date(2024, 3, 1))
        self.assertEqual(parse_month('0001-01', today), date(2024, 3, 1))
        self.assertEqual(parse_month('9998-12', today), date(9998, 12, 1))
        self.assertEqual(BookingCalendar([], parse_month('9999-12', today), today).next_month, date(2024, 4, 1))


class ColorTest(unittest.TestCase):

    def test_colors_follow_position_and_wrap(self):
        visitors = [Visitor(id=f"v{idx}", name=f"Visitor {idx:02d}") for idx in range(len(VISITOR_COLORS) + 1)]
        colored = assign_colors(visitors)
        self.assertEqual([visitor.color for visitor in colored[:len(VISITOR_COLORS)]], VISITOR_COLORS)
        self.assertEqual(colored[-1].color, VISITOR_COLORS[0])

    def test_unknown_visitor_gets_default_color(self):
        visitors = assign_colors([Visitor(id='v1', name='Alice')])
        visits = color_visits((make_visit('a', date(2024, 3, 1), date(2024, 3, 2), visitor_id=vid)
                               for vid in ('v1', 'gone')), visitors)
        self.assertEqual(visits[0].color, VISITOR_COLORS[0])
        self.assertEqual(visits[0].visitor_name, 'Alice')
        self.assertEqual(visits[1].color, DEFAULT_COLOR)
        self.assertEqual(visits[1].visitor_name, 'Unknown')


class BookingCalendarTest(unittest.TestCase):

    def test_grid_spans_whole_weeks(self):
        # March 2024 starts on a Friday and ends on a Sunday
        booking_calendar = BookingCalendar([], date(2024, 3, 1), date(2024, 3, 17))
        self.assertEqual(booking_calendar.grid_start, date(2024, 2, 25))
        self.assertEqual(booking_calendar.grid_end, date(2024, 4, 6))
        weeks = booking_calendar.weeks()
        self.assertEqual(len(weeks), 6)
        self.assertTrue(all(len(week) == 7 for week in weeks))
        self.assertFalse(weeks[0][0].in_month)
        self.assertTrue(weeks[0][5].in_month)
        self.assertEqual(booking_calendar.title, 'March 2024')

    def test_month_starting_on_sunday(self):
        booking_calendar = BookingCalendar([], date(2026, 2, 1), date(2026, 2, 10))
        self.assertEqual(booking_calendar.grid_start, date(2026, 2, 1))
        self.assertEqual(booking_calendar.grid_end, date(2026, 2, 28))
        self.assertEqual(len(booking_calendar.weeks()), 4)

    def test_today_marked(self):
        weeks = BookingCalendar([], date(2024, 3, 1), date(2024, 3, 17)).weeks()
        marked = [cell.day for week in weeks for cell in week if cell.is_today]
        self.assertEqual(marked, [date(2024, 3, 17)])

    def test_visit_bars_mark_start_and_end(self):
        visit = make_visit('a', date(2024, 3, 3), date(2024, 3, 5))
        weeks = BookingCalendar([visit], date(2024, 3, 1), date(2024, 3, 1)).weeks()
        cells = {cell.day: cell for week in weeks for cell in week}
        self.assertEqual([(bar.is_start, bar.is_end) for bar in cells[date(2024, 3, 3)].bars], [(True, False)])
        self.assertEqual([(bar.is_start, bar.is_end) for bar in cells[date(2024, 3, 4)].bars], [(False, False)])
        self.assertEqual([(bar.is_start, bar.is_end) for bar in cells[date(2024, 3, 5)].bars], [(False, True)])
        self.assertEqual(cells[date(2024, 3, 6)].bars, [])

    def test_overlapping_visits_stack_in_start_order(self):
        later = make_visit('later', date(2024, 3, 4), date(2024, 3, 8))
        earlier = make_visit('earlier', date(2024, 3, 2), date(2024, 3, 5), status=VisitStatus.PENDING)
        booking_calendar = BookingCalendar([later, earlier], date(2024, 3, 1), date(2024, 3, 1))
        ids = [visit.id for visit in booking_calendar.visits_for_day(date(2024, 3, 4))]
        self.assertEqual(ids, ['earlier', 'later'])

    def test_denied_visits_hidden(self):
        denied = make_visit('d', date(2024, 3, 4), date(2024, 3, 8), status=VisitStatus.DENIED)
        booking_calendar = BookingCalendar([denied], date(2024, 3, 1), date(2024, 3, 1))
        self.assertEqual(booking_calendar.visits_in_view(), [])
        self.assertEqual(booking_calendar.visits_for_day(date(2024, 3, 5)), [])

    def test_visits_in_view_include_neighbour_month_days(self):
        spill_over = make_visit('spill', date(2024, 2, 20), date(2024, 2, 26))
        outside = make_visit('outside', date(2024, 2, 1), date(2024, 2, 24))
        booking_calendar = BookingCalendar([spill_over, outside], date(2024, 3, 1), date(2024, 3, 1))
        self.assertEqual([visit.id for visit in booking_calendar.visits_in_view()], ['spill'])

    def test_to_dict(self):
        visit = make_visit('a', date(2024, 3, 3), date(2024, 3, 3))
        data = BookingCalendar([visit], date(2024, 3, 1), date(2024, 3, 1)).to_dict()
        self.assertEqual(data['month'], '2024-03')
        self.assertEqual(data['previous_month'], '2024-02')
        self.assertEqual(data['next_month'], '2024-04')
        day = next(cell for week in data['weeks'] for cell in week if cell['date'] == '2024-03-03')
        self.assertEqual(day['visits'][0]['id'], 'a')
        self.assertTrue(day['visits'][0]['is_start'])
        self.assertTrue(day['visits'][0]['is_end'])


if __name__ == '__main__':
    unittest.main()
