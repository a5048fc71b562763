"""Reindex job - the resumable step controller."""

from .reindex import PlanEntry, ReindexJob, RunScope, RunState, steps_for

__all__ = [
    "PlanEntry",
    "ReindexJob",
    "RunScope",
    "RunState",
    "steps_for",
]
