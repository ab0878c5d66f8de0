"""
Override Layer

Applies user-pinned corrections to cycles, field by field. A field the
override supplies replaces the computed or matched value; a field it omits
leaves the cycle alone. Overrides never change a cycle's number or period
and never trigger re-matching.

Per-cycle notes (stored separately from overrides) are merged here too;
an override's own notes win over a stored note.
"""

from typing import Any, Mapping, Optional

from recurring_cycles.models.cycle import Cycle
from recurring_cycles.models.recurrence import CycleOverride


def apply_override(cycle: Cycle, override: Optional[CycleOverride]) -> Cycle:
    """Apply one override to one cycle."""
    if override is None or override.is_empty:
        return cycle

    update: dict[str, Any] = {"override": override}
    if override.expected_date is not None:
        update["expected_date"] = override.expected_date
    if override.expected_amount is not None:
        update["expected_amount"] = override.expected_amount
    if override.minimum_amount is not None:
        update["minimum_amount"] = override.minimum_amount
    if override.notes is not None:
        update["notes"] = override.notes

    return cycle.model_copy(update=update)


def apply_overrides(
    cycles: list[Cycle],
    overrides: Optional[Mapping[int, CycleOverride]] = None,
    notes: Optional[Mapping[int, str]] = None,
) -> list[Cycle]:
    """
    Apply stored notes, then overrides, to every cycle.

    Args:
        cycles: Cycles after activity matching
        overrides: Cycle number -> override
        notes: Cycle number -> free-text note

    Returns:
        New cycles; inputs are not modified
    """
    overrides = overrides or {}
    notes = notes or {}

    result = []
    for cycle in cycles:
        note = notes.get(cycle.cycle_number)
        if note:
            cycle = cycle.model_copy(update={"notes": note})
        result.append(apply_override(cycle, overrides.get(cycle.cycle_number)))
    return result
