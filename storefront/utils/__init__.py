"""Utility modules."""
from .money import minor_units, optional_minor_units, parse_timestamp, format_timestamp
from .observable import StateHolder
from .mutation_guard import MutationGuard, MutationPolicy, MutationInProgress

__all__ = [
    "minor_units",
    "optional_minor_units",
    "parse_timestamp",
    "format_timestamp",
    "StateHolder",
    "MutationGuard",
    "MutationPolicy",
    "MutationInProgress",
]
