from __future__ import annotations

from datetime import date, datetime, timezone
import unittest

from shiftwatch.schemas import ScheduleEntry, ShiftWindow
from shiftwatch.services.shift_timeline import (
    build_shift_occurrences,
    find_current_occurrence,
    find_next_occurrence,
    resolve_user_day_shifts,
)

TUESDAY = date(2024, 1, 2)


class ResolveUserDayShiftsTests(unittest.TestCase):
    def test_dated_entry_overrides_recurring(self) -> None:
        schedules = [
            ScheduleEntry(user_id="u1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="u1", date=TUESDAY, location_id="ICU", note="2pm-10pm"),
        ]
        windows = resolve_user_day_shifts(schedules, TUESDAY)
        self.assertEqual([(w.start, w.end) for w in windows], [("14:00", "22:00")])

    def test_dated_off_entry_clears_the_day(self) -> None:
        schedules = [
            ScheduleEntry(user_id="u1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="u1", date=TUESDAY, location_id="Off"),
        ]
        self.assertEqual(resolve_user_day_shifts(schedules, TUESDAY), [])

    def test_word_off_must_stand_alone(self) -> None:
        schedules = [ScheduleEntry(user_id="u1", date=TUESDAY, location_id="Office", note="9am-1pm")]
        windows = resolve_user_day_shifts(schedules, TUESDAY)
        self.assertEqual([(w.start, w.end) for w in windows], [("09:00", "13:00")])

    def test_bounded_recurring_entry_outranks_open_ended(self) -> None:
        schedules = [
            ScheduleEntry(
                user_id="u1",
                location_id="ER",
                note="7am-3pm",
                created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            ),
            ScheduleEntry(
                user_id="u1",
                location_id="ER",
                valid_from=date(2023, 12, 1),
                note="10am-6pm",
                created_at=datetime(2023, 11, 1, 12, 0, tzinfo=timezone.utc),
            ),
        ]
        windows = resolve_user_day_shifts(schedules, TUESDAY)
        self.assertEqual(windows[0].start, "10:00")

    def test_newest_recurring_entry_wins_a_tie(self) -> None:
        schedules = [
            ScheduleEntry(
                user_id="u1",
                note="7am-3pm",
                created_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
            ),
            ScheduleEntry(
                user_id="u1",
                note="11am-7pm",
                created_at=datetime(2023, 9, 1, tzinfo=timezone.utc),
            ),
        ]
        windows = resolve_user_day_shifts(schedules, TUESDAY)
        self.assertEqual(windows[0].start, "11:00")

    def test_no_default_window_for_the_personal_view(self) -> None:
        schedules = [ScheduleEntry(user_id="u1", location_id="ER", note="cover")]
        self.assertEqual(resolve_user_day_shifts(schedules, TUESDAY), [])


class ShiftOccurrenceTests(unittest.TestCase):
    def test_overnight_shift_from_yesterday_is_current(self) -> None:
        schedules = [ScheduleEntry(user_id="u1", location_id="ICU", note="10pm-6am")]
        now = datetime(2024, 1, 2, 2, 0, tzinfo=timezone.utc)

        occurrences = build_shift_occurrences(schedules, now)
        self.assertEqual(len(occurrences), 3)

        current = find_current_occurrence(occurrences, now)
        self.assertIsNotNone(current)
        assert current is not None
        self.assertEqual(current.day, date(2024, 1, 1))
        self.assertEqual(current.starts_at, datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc))
        self.assertEqual(current.ends_at, datetime(2024, 1, 2, 6, 0, tzinfo=timezone.utc))

        upcoming = find_next_occurrence(occurrences, now)
        assert upcoming is not None
        self.assertEqual(upcoming.starts_at, datetime(2024, 1, 2, 22, 0, tzinfo=timezone.utc))

    def test_night_roster_morning_block_moves_to_next_day(self) -> None:
        schedules = [
            ScheduleEntry(
                user_id="u1",
                location_id="Night ICU",
                shifts=[ShiftWindow(start="00:00", end="08:00")],
            )
        ]
        now = datetime(2024, 1, 2, 12, 0)
        occurrences = build_shift_occurrences(schedules, now)

        starts = [item.starts_at for item in occurrences]
        self.assertEqual(
            starts,
            [datetime(2024, 1, 2, 0, 0), datetime(2024, 1, 3, 0, 0), datetime(2024, 1, 4, 0, 0)],
        )
        self.assertIsNone(find_current_occurrence(occurrences, now))
        upcoming = find_next_occurrence(occurrences, now)
        assert upcoming is not None
        self.assertEqual(upcoming.day, TUESDAY)

    def test_dated_entry_suppresses_recurring_on_its_day(self) -> None:
        schedules = [
            ScheduleEntry(user_id="u1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="u1", date=TUESDAY, location_id="OPD", note="1pm-5pm"),
        ]
        now = datetime(2024, 1, 2, 9, 0)
        occurrences = build_shift_occurrences(schedules, now)

        tuesday = [item for item in occurrences if item.day == TUESDAY]
        self.assertEqual(len(tuesday), 1)
        self.assertEqual(tuesday[0].location_id, "OPD")
        self.assertFalse(tuesday[0].is_recurring)
        self.assertIsNone(find_current_occurrence(occurrences, now))

    def test_default_window_fills_missing_times(self) -> None:
        schedules = [ScheduleEntry(user_id="u1", location_id="ER")]
        now = datetime(2024, 1, 2, 9, 0)
        occurrences = build_shift_occurrences(
            schedules,
            now,
            default_window=ShiftWindow(start="07:00", end="19:00"),
        )
        current = find_current_occurrence(occurrences, now)
        assert current is not None
        read = current.to_read()
        self.assertEqual((read.start, read.end), ("07:00", "19:00"))
        self.assertEqual(read.date, TUESDAY)
        self.assertTrue(read.is_recurring)


if __name__ == "__main__":
    unittest.main()
