"""
Cycle De-duplicator

Guarantees that cycle numbers and (number, start, end) keys are unique in
the final schedule. The generator never produces duplicates on its own;
this stage protects consumers from upstream merges that might.

DESIGN DECISION: Discards are returned as DuplicateDiagnostic records
rather than logged here, so the stage stays pure. The service decides
what to log.
"""

from recurring_cycles.models.cycle import Cycle, DuplicateDiagnostic


def deduplicate_cycles(
    cycles: list[Cycle],
) -> tuple[list[Cycle], list[DuplicateDiagnostic]]:
    """
    Drop duplicate cycles and sort by cycle number.

    Pass 1 keeps the first cycle per (number, start, end).
    Pass 2 keeps the first remaining cycle per number.

    Returns:
        (unique cycles sorted by number, one diagnostic per discarded cycle)
    """
    diagnostics: list[DuplicateDiagnostic] = []

    seen_keys = set()
    by_key = []
    for cycle in cycles:
        if cycle.identity_key in seen_keys:
            diagnostics.append(DuplicateDiagnostic(
                cycle_number=cycle.cycle_number,
                start_date=cycle.start_date,
                end_date=cycle.end_date,
                reason="duplicate_key",
                message=(
                    f"Cycle {cycle.cycle_number} ({cycle.start_date} - {cycle.end_date}) "
                    f"appears more than once"
                ),
            ))
            continue
        seen_keys.add(cycle.identity_key)
        by_key.append(cycle)

    seen_numbers = set()
    unique = []
    for cycle in by_key:
        if cycle.cycle_number in seen_numbers:
            diagnostics.append(DuplicateDiagnostic(
                cycle_number=cycle.cycle_number,
                start_date=cycle.start_date,
                end_date=cycle.end_date,
                reason="duplicate_number",
                message=(
                    f"Cycle number {cycle.cycle_number} already used by another period; "
                    f"dropped {cycle.start_date} - {cycle.end_date}"
                ),
            ))
            continue
        seen_numbers.add(cycle.cycle_number)
        unique.append(cycle)

    unique.sort(key=lambda c: c.cycle_number)
    return unique, diagnostics
