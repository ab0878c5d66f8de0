"""
Cycle engine: pure, synchronous stages from rule to classified schedule.
"""

from recurring_cycles.engine.bills import attach_bills, group_bills_by_cycle, representative_bill
from recurring_cycles.engine.classifier import (
    classify_cycles,
    classify_status,
    compute_statistics,
    partition_cycles,
)
from recurring_cycles.engine.dedup import deduplicate_cycles
from recurring_cycles.engine.generator import clip_to_month, generate_cycles, occurrence_date
from recurring_cycles.engine.matcher import (
    MatchResult,
    claim_activity,
    match_activity,
    within_amount_band,
)
from recurring_cycles.engine.normalizer import (
    RecurrenceError,
    RuleValidationError,
    UnknownFrequencyError,
    normalize_custom_unit,
    normalize_frequency,
    normalize_rule,
    unrecognized_tokens,
)
from recurring_cycles.engine.overrides import apply_override, apply_overrides
from recurring_cycles.engine.pipeline import build_cycle_schedule
from recurring_cycles.engine.pricing import resolve_pricing_phases
from recurring_cycles.engine.queries import (
    cycles_needing_bills,
    find_cycle_for_date,
    get_cycle_by_number,
)

__all__ = [
    # Normalizer
    "normalize_rule",
    "normalize_frequency",
    "normalize_custom_unit",
    "unrecognized_tokens",
    "RecurrenceError",
    "UnknownFrequencyError",
    "RuleValidationError",
    # Stages
    "generate_cycles",
    "occurrence_date",
    "clip_to_month",
    "resolve_pricing_phases",
    "match_activity",
    "claim_activity",
    "within_amount_band",
    "MatchResult",
    "apply_override",
    "apply_overrides",
    "attach_bills",
    "group_bills_by_cycle",
    "representative_bill",
    "deduplicate_cycles",
    "classify_status",
    "classify_cycles",
    "partition_cycles",
    "compute_statistics",
    # Pipeline
    "build_cycle_schedule",
    # Queries
    "get_cycle_by_number",
    "find_cycle_for_date",
    "cycles_needing_bills",
]
