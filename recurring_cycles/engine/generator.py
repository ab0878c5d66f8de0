"""
Cycle Generator

Pure function: RecurrenceRule -> ordered, capped list of Cycle skeletons.

Date advancement:
- daily/weekly: fixed-length steps (interval days, interval x 7 days)
- monthly/quarterly/yearly: interval x 1/3/12 calendar months
- custom: interval x the custom unit, using the rules above

Month-based occurrences are computed from the START month (occurrence k is
start month + k * step), never from the previous occurrence. The day is the
anchor day, or the start date's day, clipped to the length of the target
month. So a rule anchored on the 31st lands on Feb 29 in a leap year and
goes back to Mar 31 the month after.
"""

from calendar import monthrange
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from recurring_cycles.models.cycle import Cycle
from recurring_cycles.models.recurrence import CustomUnit, FrequencyUnit, RecurrenceRule


# (unit kind, multiplier) per frequency
_FREQUENCY_STEPS: dict[FrequencyUnit, tuple[str, int]] = {
    FrequencyUnit.DAILY: ("days", 1),
    FrequencyUnit.WEEKLY: ("days", 7),
    FrequencyUnit.MONTHLY: ("months", 1),
    FrequencyUnit.QUARTERLY: ("months", 3),
    FrequencyUnit.YEARLY: ("months", 12),
}

_CUSTOM_STEPS: dict[CustomUnit, tuple[str, int]] = {
    CustomUnit.DAYS: ("days", 1),
    CustomUnit.WEEKS: ("days", 7),
    CustomUnit.MONTHS: ("months", 1),
    CustomUnit.QUARTERS: ("months", 3),
    CustomUnit.YEARS: ("months", 12),
}


def _step(rule: RecurrenceRule) -> tuple[str, int]:
    """Resolve the rule to ('days' | 'months', size of one step)."""
    if rule.frequency == FrequencyUnit.CUSTOM:
        kind, multiplier = _CUSTOM_STEPS[rule.custom_unit]
    else:
        kind, multiplier = _FREQUENCY_STEPS[rule.frequency]
    return kind, multiplier * rule.interval


def clip_to_month(year: int, month: int, day: int) -> date:
    """Date for `day` in the given month, clipped to the month's last day."""
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _month_shift(rule: RecurrenceRule) -> int:
    """
    Months to skip before the first occurrence.

    An anchor day that falls before the start date in the start month
    pushes the series to the following month.
    """
    if rule.anchor_day is None:
        return 0
    start = rule.start_date
    first = clip_to_month(start.year, start.month, rule.anchor_day)
    return 1 if first < start else 0


def occurrence_date(rule: RecurrenceRule, index: int) -> date:
    """
    Expected date of the occurrence at zero-based `index`.

    Occurrences are strictly increasing in `index`.
    """
    kind, step = _step(rule)

    if kind == "days":
        return rule.start_date + timedelta(days=step * index)

    anchor = rule.anchor_day or rule.start_date.day
    target = rule.start_date.replace(day=1) + relativedelta(
        months=step * index + _month_shift(rule)
    )
    return clip_to_month(target.year, target.month, anchor)


def generate_cycles(rule: RecurrenceRule, max_cycles: int) -> list[Cycle]:
    """
    Generate cycle skeletons for a rule.

    Generation stops after `max_cycles` cycles, or as soon as an expected
    date would fall after the rule's end date. An occurrence exactly on
    the end date is included.

    Each cycle's period runs from its expected date up to (excluding) the
    next occurrence; the last cycle's end is the hypothetical next one.

    Args:
        rule: Canonical recurrence rule
        max_cycles: Upper bound on the number of cycles (<= 0 yields none)

    Returns:
        Cycles numbered 1..k, k <= max_cycles, expected amount = base amount
    """
    cycles: list[Cycle] = []

    for index in range(max(max_cycles, 0)):
        expected = occurrence_date(rule, index)
        if rule.end_date is not None and expected > rule.end_date:
            break

        cycles.append(Cycle(
            cycle_number=index + 1,
            start_date=expected,
            end_date=occurrence_date(rule, index + 1),
            expected_date=expected,
            expected_amount=rule.base_amount,
        ))

    return cycles
