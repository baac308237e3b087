from __future__ import annotations

import datetime as _dt
import logging
import time
from typing import Callable, Optional

from .base import SnapshotAcquirer
from .cascade import ExtractionCascade
from .config import TrackerConfig
from .exceptions import AcquisitionError
from .metrics import RunMetrics
from .models import RunSummary, Subject, SubjectOutcome, SubjectState
from .normalizer import normalize
from .rate_limiter import PolitenessDelay
from .storage import StateStore
from .strategies import default_strategies

logger = logging.getLogger(__name__)


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class Orchestrator:
    """Drives one run: every subject in turn, then at most one save.

    Subjects are processed strictly one after another with the politeness
    delay between them. A failure while acquiring or extracting skips that
    subject and leaves its stored record alone. Only a failed save escapes
    run().
    """

    def __init__(
        self,
        config: TrackerConfig,
        acquirer: SnapshotAcquirer,
        store: StateStore,
        cascade: Optional[ExtractionCascade] = None,
        pacer: Optional[PolitenessDelay] = None,
        metrics: Optional[RunMetrics] = None,
        clock: Callable[[], _dt.datetime] = _utcnow,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._acquirer = acquirer
        self._store = store
        self._cascade = cascade or ExtractionCascade(default_strategies(config.section_label))
        self._pacer = pacer or PolitenessDelay(config.delay_secs)
        self._metrics = metrics or RunMetrics()
        self._clock = clock
        self._dry_run = dry_run

    @property
    def metrics(self) -> RunMetrics:
        return self._metrics

    def run(self) -> RunSummary:
        self._store.load()
        any_changed = False

        for index, subject in enumerate(self._config.subjects):
            if index > 0:
                self._pacer.wait()
            try:
                outcome = self.process_subject(subject)
            finally:
                self._pacer.mark_done()
            self._metrics.record_outcome(outcome)
            any_changed = any_changed or outcome.changed

        if not any_changed:
            logger.info("No updates detected, keeping existing data")
        elif self._dry_run:
            logger.info("Dry run: changes detected but not saved")
        else:
            self._store.save(self._clock())
            self._metrics.record_save()
            logger.info("State saved (lastUpdated=%s)", self._store.state.last_updated)

        return self._metrics.summary()

    def process_subject(self, subject: Subject) -> SubjectOutcome:
        """PENDING -> ACQUIRING -> EXTRACTING -> MERGED | SKIPPED for a single subject."""
        start_ms = self._now_ms()
        state = SubjectState.PENDING

        try:
            state = SubjectState.ACQUIRING
            snapshot = self._acquirer.acquire(subject.address)

            state = SubjectState.EXTRACTING
            pair, strategy = self._cascade.extract_with_source(snapshot)
            if pair is None:
                previous = self._store.state.subjects[subject.key]
                logger.warning(
                    "Could not extract stats for %s, keeping existing values: %s, %s",
                    subject.display_name,
                    previous.distance,
                    previous.duration,
                )
                self._capture_debug(subject)
                return self._outcome(subject, SubjectState.SKIPPED, start_ms, error_type="ExtractionMiss")
            pair = normalize(pair)
        except AcquisitionError as exc:
            logger.warning("Error fetching %s: %s; keeping existing values", subject.display_name, exc)
            return self._outcome(subject, SubjectState.SKIPPED, start_ms, error_type="AcquisitionError")
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Error while %s %s: %s; keeping existing values",
                state.value,
                subject.display_name,
                exc,
            )
            return self._outcome(subject, SubjectState.SKIPPED, start_ms, error_type=type(exc).__name__)

        changed = self._store.merge(subject.key, pair)
        logger.info(
            "%s: %s, %s (%s%s)",
            subject.display_name,
            pair.distance,
            pair.duration,
            strategy,
            ", changed" if changed else "",
        )
        return self._outcome(subject, SubjectState.MERGED, start_ms, changed=changed, pair=pair, strategy=strategy)

    def _capture_debug(self, subject: Subject) -> None:
        try:
            path = self._acquirer.capture_debug(subject.key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not save debug capture for %s: %s", subject.display_name, exc)
            return
        if path:
            logger.warning("Debug capture for %s saved to %s", subject.display_name, path)

    def _outcome(self, subject: Subject, state: SubjectState, start_ms: int, **fields) -> SubjectOutcome:
        return SubjectOutcome(
            key=subject.key,
            state=state,
            changed=fields.get("changed", False),
            pair=fields.get("pair"),
            error_type=fields.get("error_type"),
            latency_ms=self._now_ms() - start_ms,
            strategy=fields.get("strategy"),
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
