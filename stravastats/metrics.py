from __future__ import annotations

import time
from dataclasses import asdict
from typing import Dict, List

from .models import RunSummary, SubjectOutcome, SubjectState


class RunMetrics:
    """Collects per-subject outcomes of one run and aggregates them into a RunSummary.

    Owned by the run loop for the duration of a single run."""

    def __init__(self) -> None:
        self._events: List[tuple[float, SubjectOutcome]] = []
        self._saved = False

    def record_outcome(self, outcome: SubjectOutcome) -> None:
        self._events.append((time.time(), outcome))

    def record_save(self) -> None:
        self._saved = True

    @property
    def outcomes(self) -> List[SubjectOutcome]:
        return [o for _, o in self._events]

    def summary(self) -> RunSummary:
        """Aggregate all recorded outcomes."""
        outcomes = self.outcomes
        total = len(outcomes)
        merged = sum(1 for o in outcomes if o.state is SubjectState.MERGED)
        changed = sum(1 for o in outcomes if o.changed)
        skipped = sum(1 for o in outcomes if o.state is SubjectState.SKIPPED)
        acquisition_errors = sum(1 for o in outcomes if o.error_type == "AcquisitionError")
        extraction_misses = sum(1 for o in outcomes if o.error_type == "ExtractionMiss")
        avg_latency_ms = (sum(o.latency_ms for o in outcomes) / total) if total else 0.0

        return RunSummary(
            total_subjects=total,
            merged_count=merged,
            changed_count=changed,
            skipped_count=skipped,
            acquisition_error_count=acquisition_errors,
            extraction_miss_count=extraction_misses,
            avg_latency_ms=avg_latency_ms,
            saved=self._saved,
        )

    def export_json(self) -> List[Dict]:
        """Export all recorded outcomes as a list of JSON-ready dictionaries."""
        rows = []
        for ts, o in self._events:
            row = {"timestamp": ts, **asdict(o)}
            row["state"] = o.state.value
            rows.append(row)
        return rows
