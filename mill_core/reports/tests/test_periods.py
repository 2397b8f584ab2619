from datetime import date

import pytest

from mill_core.common.exceptions import InvalidPeriod
from mill_core.reports.periods import (
    CUSTOM,
    NAMED_SELECTORS,
    CustomPeriod,
    DateRange,
    parse_period,
    resolve_period,
)

MAR_15 = date(2024, 3, 15)


def test_this_month_mid_march():
    p = resolve_period("this_month", today=MAR_15)

    assert p.current == DateRange(date(2024, 3, 1), date(2024, 4, 1))
    assert p.previous == DateRange(date(2024, 2, 1), date(2024, 3, 1))


def test_default_selector_is_this_month():
    assert resolve_period(None, today=MAR_15) == resolve_period("this_month", today=MAR_15)


def test_today_is_a_single_half_open_day():
    p = resolve_period("today", today=MAR_15)

    assert p.current == DateRange(MAR_15, date(2024, 3, 16))
    assert p.previous == DateRange(date(2024, 3, 14), MAR_15)
    assert MAR_15 in p.current
    assert date(2024, 3, 16) not in p.current


def test_this_week_starts_monday():
    p = resolve_period("this_week", today=date(2024, 3, 13))  # a Wednesday

    assert p.current == DateRange(date(2024, 3, 11), date(2024, 3, 18))
    assert p.previous == DateRange(date(2024, 3, 4), date(2024, 3, 11))


def test_last_month_across_year_boundary():
    p = resolve_period("last_month", today=date(2024, 1, 20))

    assert p.current == DateRange(date(2023, 12, 1), date(2024, 1, 1))
    assert p.previous == DateRange(date(2023, 11, 1), date(2023, 12, 1))


def test_this_quarter():
    p = resolve_period("this_quarter", today=date(2024, 2, 10))

    assert p.current == DateRange(date(2024, 1, 1), date(2024, 4, 1))
    assert p.previous == DateRange(date(2023, 10, 1), date(2024, 1, 1))


def test_this_year():
    p = resolve_period("this_year", today=MAR_15)

    assert p.current == DateRange(date(2024, 1, 1), date(2025, 1, 1))
    assert p.previous == DateRange(date(2023, 1, 1), date(2024, 1, 1))


@pytest.mark.parametrize("selector", NAMED_SELECTORS)
@pytest.mark.parametrize("today", [date(2024, 1, 1), date(2024, 2, 29), MAR_15, date(2023, 12, 31)])
def test_previous_ends_where_current_starts(selector, today):
    p = resolve_period(selector, today=today)

    assert p.previous.end == p.current.start
    assert p.previous.start < p.previous.end
    assert p.current.start < p.current.end


def test_custom_end_is_inclusive_and_previous_has_same_length():
    p = resolve_period(CustomPeriod(date(2024, 3, 10), date(2024, 3, 14)))

    assert p.selector == CUSTOM
    assert p.current == DateRange(date(2024, 3, 10), date(2024, 3, 15))
    assert p.current.days == 5
    assert p.previous == DateRange(date(2024, 3, 5), date(2024, 3, 10))


def test_custom_single_day():
    p = resolve_period(CustomPeriod(MAR_15, MAR_15))

    assert p.current.days == 1
    assert list(p.current.iter_days()) == [MAR_15]


def test_custom_start_after_end():
    with pytest.raises(InvalidPeriod):
        resolve_period(CustomPeriod(date(2024, 3, 20), date(2024, 3, 10)))


@pytest.mark.parametrize("selector", ["fortnight", "custom", 42])
def test_unknown_selectors(selector):
    with pytest.raises(InvalidPeriod):
        resolve_period(selector, today=MAR_15)


def test_parse_period_from_query_params():
    assert parse_period({}) == "this_month"
    assert parse_period({"period": "today"}) == "today"
    assert parse_period({"period": "custom", "start": "2024-03-01", "end": "2024-03-05"}) == CustomPeriod(
        date(2024, 3, 1), date(2024, 3, 5)
    )
    assert parse_period({"start": "2024-03-01", "end": "2024-03-05"}) == CustomPeriod(date(2024, 3, 1), date(2024, 3, 5))


@pytest.mark.parametrize(
    "params",
    [
        {"period": "custom", "start": "2024-03-01"},
        {"period": "custom", "start": "2024-03-01", "end": "March 5"},
        {"period": "custom", "start": "2024-02-30", "end": "2024-03-05"},
    ],
)
def test_parse_period_rejects_bad_custom_dates(params):
    with pytest.raises(InvalidPeriod):
        parse_period(params)
