from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional

from .exceptions import InvalidMetricError, PersistenceWriteError
from .models import MetricPair, PersistedState, Subject, SubjectRecord
from .normalizer import normalize, normalize_distance, normalize_duration

logger = logging.getLogger(__name__)

LAST_UPDATED_FIELD = "lastUpdated"
LEGACY_SUBJECTS_FIELD = "contestants"


def format_timestamp(moment: _dt.datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=_dt.timezone.utc)
    utc = moment.astimezone(_dt.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class StateStore(ABC):
    """Abstract owner of the persisted subject snapshot for one run.

    load() never raises; merge() reports whether a record changed; save()
    is only called when something did, and either fully succeeds or raises."""

    @property
    @abstractmethod
    def state(self) -> PersistedState:
        """The in-memory state loaded for this run."""

    @abstractmethod
    def load(self) -> PersistedState:
        """Read persisted state, falling back to defaults on any failure."""

    @abstractmethod
    def merge(self, key: str, pair: Optional[MetricPair]) -> bool:
        """Fold a freshly extracted pair into the state. Returns True on change."""

    @abstractmethod
    def save(self, now: Optional[_dt.datetime] = None) -> None:
        """Stamp lastUpdated and persist the state."""


class JsonStateStore(StateStore):
    """Keeps the subject snapshot in a single JSON document, replaced atomically on save."""

    def __init__(
        self,
        path: str,
        subjects: Iterable[Subject],
        external_id_field: str = "stravaId",
        clock: Callable[[], _dt.datetime] = _utcnow,
    ) -> None:
        self._path = path
        self._subjects: Dict[str, Subject] = {s.key: s for s in subjects}
        self._external_id_field = external_id_field
        self._clock = clock
        self._state: Optional[PersistedState] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def state(self) -> PersistedState:
        if self._state is None:
            raise RuntimeError("state not loaded; call load() first")
        return self._state

    def default_state(self) -> PersistedState:
        return PersistedState(
            last_updated=None,
            subjects={key: SubjectRecord.default_for(s) for key, s in self._subjects.items()},
        )

    def load(self) -> PersistedState:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError:
            logger.info("No state file at %s, starting from defaults", self._path)
            self._state = self.default_state()
            return self._state
        except (OSError, ValueError) as exc:
            logger.warning("Could not read state file %s (%s), starting from defaults", self._path, exc)
            self._state = self.default_state()
            return self._state

        if not isinstance(document, dict):
            logger.warning("State file %s does not hold a JSON object, starting from defaults", self._path)
            self._state = self.default_state()
            return self._state

        self._state = self._from_document(document)
        return self._state

    def _from_document(self, document: Dict[str, Any]) -> PersistedState:
        entries = document
        legacy = document.get(LEGACY_SUBJECTS_FIELD)
        if isinstance(legacy, dict) and not any(key in document for key in self._subjects):
            entries = legacy

        last_updated = document.get(LAST_UPDATED_FIELD)
        if not isinstance(last_updated, str):
            last_updated = None

        records: Dict[str, SubjectRecord] = {}
        for key, subject in self._subjects.items():
            records[key] = self._record_from_entry(subject, entries.get(key))
        return PersistedState(last_updated=last_updated, subjects=records)

    def _record_from_entry(self, subject: Subject, entry: Any) -> SubjectRecord:
        default = SubjectRecord.default_for(subject)
        if not isinstance(entry, dict):
            return default
        try:
            distance = str(normalize_distance(str(entry.get("distance", ""))))
            duration = normalize_duration(str(entry.get("movingTime", "")))
        except InvalidMetricError as exc:
            logger.warning("Stored metrics for %s are malformed (%s), resetting", subject.key, exc)
            return default
        return SubjectRecord(
            name=subject.display_name,
            external_id=subject.external_id,
            distance=distance,
            duration=duration,
        )

    def merge(self, key: str, pair: Optional[MetricPair]) -> bool:
        state = self.state
        if key not in self._subjects:
            raise KeyError(f"Unknown subject: {key}")
        if pair is None:
            return False

        canonical = normalize(pair)
        distance = str(canonical.distance)
        current = state.subjects[key]
        if current.distance == distance and current.duration == canonical.duration:
            return False

        state.subjects[key] = SubjectRecord(
            name=current.name,
            external_id=current.external_id,
            distance=distance,
            duration=canonical.duration,
        )
        return True

    def save(self, now: Optional[_dt.datetime] = None) -> None:
        state = self.state
        previous = state.last_updated
        state.last_updated = format_timestamp(now or self._clock())
        try:
            self._write_atomic(self.to_dict())
        except OSError as exc:
            state.last_updated = previous
            raise PersistenceWriteError(f"Failed to write {self._path}: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        state = self.state
        document: Dict[str, Any] = {LAST_UPDATED_FIELD: state.last_updated}
        for key, record in state.subjects.items():
            document[key] = {
                "name": record.name,
                self._external_id_field: record.external_id,
                "distance": record.distance,
                "movingTime": record.duration,
            }
        return document

    def _write_atomic(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".state-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(document, indent=2, ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise
