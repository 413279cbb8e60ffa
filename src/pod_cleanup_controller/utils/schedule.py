"""
Cron gating for scheduled cleanup policies.

A policy schedule is a standard five-field cron expression (minute, hour,
day-of-month, month, day-of-week) evaluated in UTC. The gate compares the
next tick after the last recorded run with the current time and answers
either "run now" or "wait until".
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from croniter import CroniterBadDateError, CroniterError, croniter

from ..exceptions import InvalidScheduleError


CRON_FIELD_COUNT = 5

FIELD_NAMES = ("minute", "hour", "day-of-month", "month", "day-of-week")

MONTH_NAMES = {"jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"}
DAY_NAMES = {"sun", "mon", "tue", "wed", "thu", "fri", "sat"}

_ATOM_SEPARATORS = re.compile(r"[,/-]")


class GateAction(str, Enum):
    """Outcome of a schedule check."""

    RUN = "run"
    WAIT = "wait"


@dataclass(frozen=True)
class GateDecision:
    """Run now, or wait until a given time."""

    action: GateAction
    until: Optional[datetime] = None

    @property
    def should_run(self) -> bool:
        return self.action == GateAction.RUN

    def wait_duration(self, now: datetime) -> timedelta:
        if self.until is None:
            return timedelta(0)
        return max(self.until - now, timedelta(0))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _check_field(expression: str, index: int, field: str) -> None:
    """
    Reject tokens outside standard cron syntax.

    Allowed atoms are numbers, ``*``, ``?`` in the day fields, and month or
    weekday names in their fields. Extensions such as ``L``, ``W``, ``#``
    and ``H`` are rejected.
    """
    for atom in _ATOM_SEPARATORS.split(field):
        lowered = atom.lower()
        if atom.isdigit() or atom == "*":
            continue
        if atom == "?" and FIELD_NAMES[index] in ("day-of-month", "day-of-week"):
            continue
        if FIELD_NAMES[index] == "month" and lowered in MONTH_NAMES:
            continue
        if FIELD_NAMES[index] == "day-of-week" and lowered in DAY_NAMES:
            continue
        raise InvalidScheduleError(
            expression,
            f"unsupported value {atom!r} in {FIELD_NAMES[index]} field {field!r}"
        )


class CronSchedule:
    """A parsed five-field cron expression."""

    def __init__(self, expression: str) -> None:
        self.expression = expression

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        """
        Parse and validate a cron expression.

        Raises:
            InvalidScheduleError: If the expression is not a valid
                five-field cron expression
        """
        fields = expression.split()
        if len(fields) != CRON_FIELD_COUNT:
            raise InvalidScheduleError(
                expression,
                f"expected exactly {CRON_FIELD_COUNT} fields, found {len(fields)}"
            )

        for index, field in enumerate(fields):
            _check_field(expression, index, field)

        normalized = " ".join(fields)
        try:
            # An expression such as "0 0 31 2 *" compiles but never fires
            croniter(normalized, datetime(2000, 1, 1, tzinfo=timezone.utc)).get_next(datetime)
        except (CroniterError, ValueError, KeyError) as e:
            raise InvalidScheduleError(expression, str(e)) from e

        return cls(normalized)

    def next_run(self, after: datetime) -> datetime:
        """
        Return the first tick strictly after ``after``.

        Raises:
            InvalidScheduleError: If no tick can be found
        """
        return self.upcoming(after, 1)[0]

    def upcoming(self, after: datetime, count: int) -> List[datetime]:
        """Return the next ``count`` ticks after ``after``."""
        iterator = croniter(self.expression, _as_utc(after))
        try:
            return [iterator.get_next(datetime) for _ in range(count)]
        except CroniterBadDateError as e:
            raise InvalidScheduleError(self.expression, str(e)) from e

    def gate(self, last_run: Optional[datetime], now: datetime) -> GateDecision:
        """
        Decide whether a cleanup is due.

        Args:
            last_run: Time of the last recorded run, None if never run
            now: Current time

        Returns:
            RUN if no run was recorded or the next tick after the last run
            is not in the future, otherwise WAIT until that tick
        """
        if last_run is None:
            return GateDecision(GateAction.RUN)

        next_run = self.next_run(last_run)
        if next_run > _as_utc(now):
            return GateDecision(GateAction.WAIT, until=next_run)
        return GateDecision(GateAction.RUN)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"
