import datetime

import pytest

from tutor_scheduler.errors import SlotKeyError
from tutor_scheduler.slots import Slot, build_slots, ordered_dates


def test_parse_and_key():
    parsed = Slot.parse("2026-07-21_2")
    assert parsed == Slot(datetime.date(2026, 7, 21), 2)
    assert parsed.key == "2026-07-21_2"
    assert str(parsed) == "2026-07-21_2"


@pytest.mark.parametrize("key", ["2026-07-21", "2026-13-01_1", "2026-07-21_0", "2026-07-21_x", "", 12])
def test_parse_rejects_malformed_keys(key):
    with pytest.raises(SlotKeyError):
        Slot.parse(key)


def test_slot_key_error_is_value_error():
    with pytest.raises(ValueError):
        Slot.parse("nope")


def test_ordering_is_date_then_period():
    keys = ["2026-07-21_1", "2026-07-20_3", "2026-07-20_1"]
    assert [s.key for s in sorted(Slot.parse(k) for k in keys)] == [
        "2026-07-20_1",
        "2026-07-20_3",
        "2026-07-21_1",
    ]


def test_weekday_follows_python_convention():
    assert Slot(datetime.date(2026, 7, 20), 1).weekday == 0  # Monday
    assert Slot(datetime.date(2026, 7, 26), 1).weekday == 6


def test_build_slots_skips_holidays():
    monday = datetime.date(2026, 7, 20)
    slots = build_slots(monday, monday + datetime.timedelta(days=2), 2, holidays=[monday + datetime.timedelta(days=1)])
    assert [s.key for s in slots] == [
        "2026-07-20_1",
        "2026-07-20_2",
        "2026-07-22_1",
        "2026-07-22_2",
    ]
    assert ordered_dates(slots) == [monday, monday + datetime.timedelta(days=2)]


def test_build_slots_without_range_is_empty():
    assert build_slots(None, None, 3) == []
    assert build_slots(datetime.date(2026, 7, 20), datetime.date(2026, 7, 20), 0) == []


def test_shifted_stays_on_the_same_day():
    s = Slot(datetime.date(2026, 7, 21), 2)
    assert s.shifted(-1) == Slot(datetime.date(2026, 7, 21), 1)
    assert s.shifted(1).date == s.date
