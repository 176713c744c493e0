"""Ingestion progress reporting."""

from docrag.pipeline.progress_tracker import ProgressCallback, ProgressReporter

__all__ = ["ProgressCallback", "ProgressReporter"]
