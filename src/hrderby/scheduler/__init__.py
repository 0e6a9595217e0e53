"""Ingestion cycle scheduling."""

from .service import BackoffPolicy, CyclePhase, CycleResult, Scheduler

__all__ = ["BackoffPolicy", "CyclePhase", "CycleResult", "Scheduler"]
