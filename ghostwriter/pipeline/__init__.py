"""Revision loop orchestration."""

from .controller import (
    CostEntry,
    CostLedger,
    PipelineState,
    RevisionController,
    create_controller_from_config,
    next_state,
    select_best_effort,
)

__all__ = [
    "CostEntry",
    "CostLedger",
    "PipelineState",
    "RevisionController",
    "create_controller_from_config",
    "next_state",
    "select_best_effort",
]
