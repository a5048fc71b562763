"""Orchestrator - run hosting, checkpointing, retries."""

from .runner import ReindexRunner, RunProgress, create_runner, retry_config_from

__all__ = [
    "ReindexRunner",
    "RunProgress",
    "create_runner",
    "retry_config_from",
]
