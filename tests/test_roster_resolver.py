from __future__ import annotations

from datetime import date, datetime
import unittest

from shiftwatch.models import PresenceFilterMode, PunchType
from shiftwatch.schemas import AttendancePunch, ScheduleEntry, ShiftWindow, StaffProfile
from shiftwatch.services.roster import (
    location_label,
    materialize_windows,
    resolve_active_shifts,
    resolve_present_user_ids,
    schedule_applies_on,
    split_portable_procedure_marker,
    window_contains,
)

TUESDAY = date(2024, 1, 2)
FRIDAY = date(2024, 1, 5)


def _punch(user_id: str, kind: PunchType, hour: int, minute: int = 0, day: date = TUESDAY) -> AttendancePunch:
    return AttendancePunch(
        user_id=user_id,
        date=day,
        type=kind,
        timestamp=datetime(day.year, day.month, day.day, hour, minute),
    )


class ScheduleApplicabilityTests(unittest.TestCase):
    def test_dated_entry_applies_only_on_its_date(self) -> None:
        entry = ScheduleEntry(user_id="u1", date=TUESDAY, location_id="ER")
        self.assertTrue(schedule_applies_on(entry, TUESDAY))
        self.assertFalse(schedule_applies_on(entry, date(2024, 1, 3)))

    def test_validity_bounds_are_inclusive(self) -> None:
        entry = ScheduleEntry(
            user_id="u1",
            valid_from=date(2024, 1, 1),
            valid_to=TUESDAY,
            location_id="ER",
        )
        self.assertTrue(schedule_applies_on(entry, date(2024, 1, 1)))
        self.assertTrue(schedule_applies_on(entry, TUESDAY))
        self.assertFalse(schedule_applies_on(entry, date(2024, 1, 3)))
        self.assertFalse(schedule_applies_on(entry, date(2023, 12, 31)))

    def test_friday_and_holiday_markers(self) -> None:
        plain = ScheduleEntry(user_id="u1", location_id="ER")
        friday = ScheduleEntry(user_id="u2", location_id="ER", note="Friday cover")
        holiday = ScheduleEntry(user_id="u3", location_id="Holiday ward")

        self.assertTrue(schedule_applies_on(plain, TUESDAY))
        self.assertFalse(schedule_applies_on(plain, FRIDAY))
        self.assertTrue(schedule_applies_on(friday, FRIDAY))
        self.assertFalse(schedule_applies_on(friday, TUESDAY))
        self.assertFalse(schedule_applies_on(holiday, TUESDAY))
        self.assertFalse(schedule_applies_on(holiday, FRIDAY))


class WindowTests(unittest.TestCase):
    def test_materialize_prefers_explicit_then_note_then_default(self) -> None:
        explicit = ScheduleEntry(user_id="u1", shifts=[ShiftWindow(start="07:00", end="15:00")], note="9am-5pm")
        from_note = ScheduleEntry(user_id="u1", shifts=[], note="9am-5pm")
        fallback = ScheduleEntry(user_id="u1", note="ER")

        self.assertEqual(materialize_windows(explicit)[0].start, "07:00")
        self.assertEqual(materialize_windows(from_note)[0].start, "09:00")
        self.assertEqual(materialize_windows(fallback)[0].label, "08:00 - 16:00")

    def test_window_contains_handles_overnight_tail(self) -> None:
        night = ShiftWindow(start="22:00", end="06:00")
        self.assertTrue(window_contains(night, 23 * 60))
        self.assertTrue(window_contains(night, 2 * 60))
        self.assertFalse(window_contains(night, 6 * 60))
        self.assertFalse(window_contains(night, 12 * 60))

    def test_window_contains_is_half_open(self) -> None:
        day = ShiftWindow(start="08:00", end="16:00")
        self.assertTrue(window_contains(day, 8 * 60))
        self.assertFalse(window_contains(day, 16 * 60))
        self.assertFalse(window_contains(ShiftWindow(start="08:00", end="08:00"), 8 * 60))


class PresenceTests(unittest.TestCase):
    def test_latest_punch_decides_presence(self) -> None:
        punches = [
            _punch("u1", PunchType.IN, 7, 55),
            _punch("u2", PunchType.OUT, 12),
            _punch("u2", PunchType.IN, 8),
            _punch("u3", PunchType.IN, 8, day=date(2024, 1, 1)),
        ]
        self.assertEqual(resolve_present_user_ids(punches, day=TUESDAY), {"u1"})
        self.assertEqual(resolve_present_user_ids(punches), {"u1", "u3"})

    def test_portable_procedure_marker_is_stripped(self) -> None:
        self.assertEqual(split_portable_procedure_marker("Sara (PP)"), ("Sara", True))
        self.assertEqual(split_portable_procedure_marker("pp Omar"), ("Omar", True))
        self.assertEqual(split_portable_procedure_marker("Philippa"), ("Philippa", False))
        self.assertEqual(split_portable_procedure_marker(None), ("", False))

    def test_common_duty_location_uses_note_prefix(self) -> None:
        entry = ScheduleEntry(user_id="u1", location_id="common_duty", note="Ward 5 - cover")
        self.assertEqual(location_label(entry), "Ward 5")
        self.assertEqual(location_label(ScheduleEntry(user_id="u1", location_id="ICU")), "ICU")


class ResolveActiveShiftsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.schedules = [
            ScheduleEntry(user_id="u1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="u2", location_id="ICU", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="doc", location_id="ER", note="8am-4pm"),
        ]
        self.users = [
            StaffProfile(id="u1", name="Nurse Amal", role="user", phone="111"),
            StaffProfile(id="u2", name="Nurse Huda", role="user"),
            StaffProfile(id="doc", name="Dr. Karim", role="Doctor"),
        ]
        self.punches = [_punch("u1", PunchType.IN, 7, 50)]

    def test_present_mode_lists_punched_in_staff_and_doctors(self) -> None:
        active = resolve_active_shifts(
            self.schedules,
            datetime(2024, 1, 2, 10, 0),
            self.punches,
            self.users,
        )
        self.assertEqual([entry.name for entry in active], ["Nurse Amal", "Dr. Karim"])
        amal = active[0]
        self.assertEqual(amal.location, "ER")
        self.assertEqual(amal.time_window_label, "08:00 - 16:00")
        self.assertEqual(amal.phone, "111")
        self.assertTrue(amal.is_currently_present)
        self.assertFalse(active[1].is_currently_present)

    def test_nobody_is_listed_outside_the_window(self) -> None:
        active = resolve_active_shifts(
            self.schedules,
            datetime(2024, 1, 2, 18, 0),
            self.punches,
            self.users,
            mode=PresenceFilterMode.ALL,
        )
        self.assertEqual(active, [])

    def test_all_mode_lists_every_scheduled_person(self) -> None:
        active = resolve_active_shifts(
            self.schedules,
            datetime(2024, 1, 2, 10, 0),
            [],
            self.users,
            mode="all",
        )
        self.assertEqual(len(active), 3)

    def test_friday_uses_only_friday_entries(self) -> None:
        schedules = self.schedules + [
            ScheduleEntry(user_id="u2", location_id="ICU", note="Friday 8am-2pm"),
        ]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 5, 10, 0),
            [],
            self.users,
            mode=PresenceFilterMode.ALL,
        )
        self.assertEqual([(entry.name, entry.time_window_label) for entry in active], [("Nurse Huda", "08:00 - 14:00")])

    def test_portable_procedure_snapshot_without_profile(self) -> None:
        schedules = [
            ScheduleEntry(
                user_id="ghost",
                location_id="Cath Lab",
                staff_name="Dr. Lina (PP)",
                shifts=[ShiftWindow(start="08:00", end="16:00")],
            )
        ]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 2, 9, 0),
            [],
            [],
            mode=PresenceFilterMode.ALL,
        )
        self.assertEqual(len(active), 1)
        self.assertEqual(active[0].name, "Dr. Lina")
        self.assertTrue(active[0].is_portable_procedure)
        self.assertIsNone(active[0].role)

        filtered = resolve_active_shifts(schedules, datetime(2024, 1, 2, 9, 0), [], [])
        self.assertEqual(filtered, [])

    def test_duplicate_names_are_listed_once(self) -> None:
        schedules = [
            ScheduleEntry(user_id="u1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="u1", location_id="OPD", shifts=[ShiftWindow(start="09:00", end="13:00")]),
        ]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 2, 10, 0),
            self.punches,
            self.users,
        )
        self.assertEqual(len(active), 1)
        self.assertEqual(active[0].location, "ER")

    def test_unnamed_people_are_kept_apart(self) -> None:
        schedules = [
            ScheduleEntry(user_id="ghost-1", location_id="ER", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="ghost-2", location_id="ICU", shifts=[ShiftWindow(start="08:00", end="16:00")]),
            ScheduleEntry(user_id="ghost-1", location_id="OPD", shifts=[ShiftWindow(start="09:00", end="13:00")]),
        ]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 2, 10, 0),
            [],
            [],
            mode=PresenceFilterMode.ALL,
        )
        self.assertEqual([(entry.user_id, entry.name, entry.location) for entry in active], [("ghost-1", "", "ER"), ("ghost-2", "", "ICU")])

    def test_overnight_window_covers_early_morning(self) -> None:
        schedules = [ScheduleEntry(user_id="u2", location_id="ICU", note="9pm to 7am")]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 2, 3, 0),
            [_punch("u2", PunchType.IN, 0, 5)],
            self.users,
        )
        self.assertEqual([entry.name for entry in active], ["Nurse Huda"])
        self.assertEqual(active[0].time_window_label, "21:00 - 07:00")

    def test_default_window_applies_without_times(self) -> None:
        schedules = [ScheduleEntry(user_id="u1", location_id="ER", note="cover")]
        active = resolve_active_shifts(
            schedules,
            datetime(2024, 1, 2, 17, 0),
            self.punches,
            self.users,
            default_window=ShiftWindow(start="12:00", end="20:00"),
        )
        self.assertEqual([entry.time_window_label for entry in active], ["12:00 - 20:00"])


if __name__ == "__main__":
    unittest.main()
