"""Durable continue-code storage on the fleet's own records."""

from progress_watchdog.storage.annotation_store import (
    AnnotationStore,
    FixedSolvedCount,
    SolvedCountSource,
)

__all__ = ["AnnotationStore", "FixedSolvedCount", "SolvedCountSource"]
