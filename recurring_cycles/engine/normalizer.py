"""
Rule Normalizer

Turns a persisted RecurrenceDescriptor into a canonical RecurrenceRule.

Storage holds whatever vocabulary the writing client used: 'month' and
'monthly', 'weeks' and 'weekly', intervals that are missing, anchor days
stored as strings. This module is the ONLY place that vocabulary is parsed.

Unknown frequency units fall back to MONTHLY with a warning. Pass
strict=True (or set CYCLES_STRICT_FREQUENCY_UNITS) to reject them instead.
"""

from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from recurring_cycles.models.recurrence import (
    CustomUnit,
    FrequencyUnit,
    RecurrenceDescriptor,
    RecurrenceRule,
)


logger = structlog.get_logger()


class RecurrenceError(Exception):
    """Base exception for recurrence rule problems."""
    pass


class UnknownFrequencyError(RecurrenceError):
    """Frequency or custom unit token is not recognized (strict mode only)."""

    def __init__(self, token: str, message: str):
        self.token = token
        super().__init__(message)


class RuleValidationError(RecurrenceError):
    """Descriptor cannot be turned into a valid rule."""
    pass


FREQUENCY_TOKENS: dict[str, FrequencyUnit] = {
    "day": FrequencyUnit.DAILY,
    "daily": FrequencyUnit.DAILY,
    "week": FrequencyUnit.WEEKLY,
    "weekly": FrequencyUnit.WEEKLY,
    "month": FrequencyUnit.MONTHLY,
    "monthly": FrequencyUnit.MONTHLY,
    "quarter": FrequencyUnit.QUARTERLY,
    "quarterly": FrequencyUnit.QUARTERLY,
    "year": FrequencyUnit.YEARLY,
    "yearly": FrequencyUnit.YEARLY,
    "custom": FrequencyUnit.CUSTOM,
}

CUSTOM_UNIT_TOKENS: dict[str, CustomUnit] = {
    "day": CustomUnit.DAYS,
    "days": CustomUnit.DAYS,
    "daily": CustomUnit.DAYS,
    "week": CustomUnit.WEEKS,
    "weeks": CustomUnit.WEEKS,
    "weekly": CustomUnit.WEEKS,
    "month": CustomUnit.MONTHS,
    "months": CustomUnit.MONTHS,
    "monthly": CustomUnit.MONTHS,
    "quarter": CustomUnit.QUARTERS,
    "quarters": CustomUnit.QUARTERS,
    "quarterly": CustomUnit.QUARTERS,
    "year": CustomUnit.YEARS,
    "years": CustomUnit.YEARS,
    "yearly": CustomUnit.YEARS,
}


def normalize_frequency(token: Optional[str], strict: bool = False) -> FrequencyUnit:
    """
    Map a stored frequency token to a FrequencyUnit.

    Missing tokens mean monthly. Unknown tokens mean monthly too, unless
    strict is set.
    """
    if token is None or not str(token).strip():
        return FrequencyUnit.MONTHLY

    cleaned = str(token).strip().lower()
    unit = FREQUENCY_TOKENS.get(cleaned)
    if unit is not None:
        return unit

    if strict:
        raise UnknownFrequencyError(
            token=cleaned,
            message=f"Unknown frequency unit: {token!r}",
        )

    logger.warning("frequency_unit_fallback", token=cleaned, fallback="monthly")
    return FrequencyUnit.MONTHLY


def normalize_custom_unit(token: Optional[str], strict: bool = False) -> CustomUnit:
    """Map a stored custom unit token (singular, plural or adverb) to a CustomUnit."""
    cleaned = str(token or "").strip().lower()
    unit = CUSTOM_UNIT_TOKENS.get(cleaned)
    if unit is not None:
        return unit

    if strict:
        raise UnknownFrequencyError(
            token=cleaned,
            message=f"Unknown custom unit: {token!r}",
        )

    logger.warning("custom_unit_fallback", token=cleaned, fallback="months")
    return CustomUnit.MONTHS


def _parse_anchor_day(value: Optional[Union[int, str]]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise RuleValidationError(f"Invalid date of occurrence: {value!r}")
    if isinstance(value, int):
        day = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if not text.isdigit():
            raise RuleValidationError(f"Invalid date of occurrence: {value!r}")
        day = int(text)

    if not 1 <= day <= 31:
        raise RuleValidationError(f"Date of occurrence must be between 1 and 31, got {day}")
    return day


def _parse_interval(value: Optional[int]) -> int:
    if not value:
        return 1
    if value < 0:
        raise RuleValidationError(f"Interval must be positive, got {value}")
    return value


def normalize_rule(
    descriptor: RecurrenceDescriptor,
    strict: bool = False,
) -> RecurrenceRule:
    """
    Build the canonical RecurrenceRule for a stored descriptor.

    Args:
        descriptor: The recurring transaction as stored
        strict: Raise UnknownFrequencyError instead of falling back to monthly

    Returns:
        A validated RecurrenceRule

    Raises:
        UnknownFrequencyError: Unknown unit in strict mode
        RuleValidationError: Bad interval, anchor day or date bounds
    """
    frequency = normalize_frequency(descriptor.frequency, strict=strict)

    custom_unit = None
    interval = _parse_interval(descriptor.interval)
    if frequency == FrequencyUnit.CUSTOM:
        custom_unit = normalize_custom_unit(descriptor.custom_unit, strict=strict)
        if descriptor.custom_interval:
            interval = _parse_interval(descriptor.custom_interval)

    base_amount = descriptor.amount or descriptor.estimated_amount or Decimal("0")

    try:
        return RecurrenceRule(
            start_date=descriptor.start_date,
            end_date=descriptor.end_date,
            frequency=frequency,
            interval=interval,
            anchor_day=_parse_anchor_day(descriptor.date_of_occurrence),
            custom_unit=custom_unit,
            base_amount=abs(base_amount),
        )
    except ValidationError as e:
        raise RuleValidationError(
            f"Recurrence {descriptor.id} is not a valid rule: {e}"
        ) from e


def unrecognized_tokens(descriptor: RecurrenceDescriptor) -> list[str]:
    """Frequency/custom unit tokens on the descriptor that would fall back."""
    tokens = []
    frequency = str(descriptor.frequency or "").strip().lower()
    if frequency and frequency not in FREQUENCY_TOKENS:
        tokens.append(frequency)
    if FREQUENCY_TOKENS.get(frequency) == FrequencyUnit.CUSTOM:
        unit = str(descriptor.custom_unit or "").strip().lower()
        if unit not in CUSTOM_UNIT_TOKENS:
            tokens.append(unit)
    return tokens
