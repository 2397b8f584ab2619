# mill_core/reports/periods.py
"""
Time-period resolver.

Every range is half-open [start, end): ``end`` is the first day *not*
included, so "today" ends at the start of tomorrow.

Named selectors cover whole calendar units and their previous period is the
preceding unit of the same kind (this_month on Mar 15 -> [Mar 1, Apr 1),
previous [Feb 1, Mar 1)). ``today``, ``this_week`` and ``custom`` use a
previous window of identical length that ends where the current one starts.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Mapping, Optional, Union

from django.utils import timezone
from django.utils.dateparse import parse_date

from mill_core.common.exceptions import InvalidPeriod

TODAY = "today"
THIS_WEEK = "this_week"
THIS_MONTH = "this_month"
LAST_MONTH = "last_month"
THIS_QUARTER = "this_quarter"
THIS_YEAR = "this_year"
CUSTOM = "custom"

NAMED_SELECTORS = (TODAY, THIS_WEEK, THIS_MONTH, LAST_MONTH, THIS_QUARTER, THIS_YEAR)
DEFAULT_SELECTOR = THIS_MONTH


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date  # exclusive

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def __contains__(self, d: date) -> bool:
        return self.start <= d < self.end

    def iter_days(self) -> Iterator[date]:
        d = self.start
        while d < self.end:
            yield d
            d += timedelta(days=1)

    @property
    def key(self) -> str:
        return f"{self.start.isoformat()}:{self.end.isoformat()}"


@dataclass(frozen=True)
class CustomPeriod:
    """
    User-picked range. Both dates are inclusive calendar days, as typed.
    """
    start: date
    end: date


Selector = Union[str, CustomPeriod, None]


@dataclass(frozen=True)
class ResolvedPeriod:
    selector: str
    current: DateRange
    previous: DateRange

    def as_dict(self) -> dict:
        return {
            "selector": self.selector,
            "current": {"start": self.current.start, "end": self.current.end},
            "previous": {"start": self.previous.start, "end": self.previous.end},
        }


def _month_start(d: date) -> date:
    return d.replace(day=1)


def _add_months(d: date, months: int) -> date:
    # d is always a first-of-month here
    idx = d.year * 12 + (d.month - 1) + months
    return date(idx // 12, idx % 12 + 1, 1)


def _same_length_before(current: DateRange) -> DateRange:
    return DateRange(start=current.start - timedelta(days=current.days), end=current.start)


def resolve_period(selector: Selector = None, *, today: Optional[date] = None) -> ResolvedPeriod:
    today = today or timezone.localdate()

    if selector in (None, ""):
        selector = DEFAULT_SELECTOR

    if isinstance(selector, CustomPeriod):
        if not isinstance(selector.start, date) or not isinstance(selector.end, date):
            raise InvalidPeriod("Custom period needs a start and an end date.")
        if selector.start > selector.end:
            raise InvalidPeriod("Start date must be on or before end date.")
        current = DateRange(selector.start, selector.end + timedelta(days=1))
        return ResolvedPeriod(CUSTOM, current, _same_length_before(current))

    if not isinstance(selector, str):
        raise InvalidPeriod(f"Unknown period {selector!r}.")

    if selector == TODAY:
        current = DateRange(today, today + timedelta(days=1))
        return ResolvedPeriod(selector, current, _same_length_before(current))

    if selector == THIS_WEEK:
        monday = today - timedelta(days=today.weekday())
        current = DateRange(monday, monday + timedelta(days=7))
        return ResolvedPeriod(selector, current, _same_length_before(current))

    if selector in (THIS_MONTH, LAST_MONTH):
        first = _month_start(today)
        if selector == LAST_MONTH:
            first = _add_months(first, -1)
        current = DateRange(first, _add_months(first, 1))
        return ResolvedPeriod(selector, current, DateRange(_add_months(first, -1), first))

    if selector == THIS_QUARTER:
        first = date(today.year, 3 * ((today.month - 1) // 3) + 1, 1)
        current = DateRange(first, _add_months(first, 3))
        return ResolvedPeriod(selector, current, DateRange(_add_months(first, -3), first))

    if selector == THIS_YEAR:
        first = date(today.year, 1, 1)
        current = DateRange(first, date(today.year + 1, 1, 1))
        return ResolvedPeriod(selector, current, DateRange(date(today.year - 1, 1, 1), first))

    if selector == CUSTOM:
        raise InvalidPeriod("Custom period needs start and end dates.")
    raise InvalidPeriod(f"Unknown period '{selector}'. Allowed: {', '.join(NAMED_SELECTORS + (CUSTOM,))}.")


def _param_date(params: Mapping, name: str) -> date:
    raw = params.get(name)
    if not raw:
        raise InvalidPeriod(f"'{name}' is required for a custom period.")
    try:
        d = parse_date(str(raw))
    except ValueError:
        d = None
    if d is None:
        raise InvalidPeriod(f"'{name}' must be a valid date (YYYY-MM-DD).")
    return d


def parse_period(params: Mapping) -> Selector:
    """
    Selector from query params: ``period`` plus ``start``/``end`` for custom.
    ``start``/``end`` without ``period`` also mean custom.
    """
    name = (params.get("period") or "").strip()
    if name == CUSTOM or (not name and (params.get("start") or params.get("end"))):
        return CustomPeriod(start=_param_date(params, "start"), end=_param_date(params, "end"))
    return name or DEFAULT_SELECTOR
