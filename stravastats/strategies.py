from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .models import MetricPair, Quantity, Snapshot, visible_text
from .patterns import find_distance, find_duration, match_distance_line, match_duration_line

DEFAULT_SECTION_LABEL = "Current Month"


class ExtractionStrategy(ABC):
    """Abstract base class for metric extraction heuristics.

    Each strategy inspects a Snapshot on its own and either returns a
    complete MetricPair or None. A strategy never returns half a pair."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        """Return the metric pair found in the snapshot, or None."""
        raise NotImplementedError


def _pair_from_text(text: str) -> Optional[MetricPair]:
    """Match both patterns against one block of text; both must hit."""
    distance = find_distance(text)
    duration = find_duration(text)
    if distance is None or duration is None:
        return None
    value, unit = distance
    return MetricPair(distance=Quantity(value=value, unit=unit), duration=duration)


class StructuredAttributeStrategy(ExtractionStrategy):
    """Reads the dedicated stat elements tagged with stable test identifiers."""

    def __init__(
        self,
        distance_selector: str = '[data-testid="stat_distance"]',
        duration_selector: str = '[data-testid="stat_moving_time"]',
    ) -> None:
        self._distance_selector = distance_selector
        self._duration_selector = duration_selector

    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        distance_el = snapshot.dom.select_one(self._distance_selector)
        duration_el = snapshot.dom.select_one(self._duration_selector)
        if distance_el is None or duration_el is None:
            return None
        distance_text = " ".join(distance_el.get_text(" ").split())
        duration_text = duration_el.get_text("").strip()
        if not distance_text or not duration_text:
            return None
        distance = find_distance(distance_text)
        duration = find_duration(duration_text)
        if distance is None or duration is None:
            return None
        value, unit = distance
        return MetricPair(distance=Quantity(value=value, unit=unit), duration=duration)


class LabeledContainerStrategy(ExtractionStrategy):
    """Scans stat sections that mention the section label, in document order."""

    def __init__(
        self,
        label: str = DEFAULT_SECTION_LABEL,
        container_selectors: Sequence[str] = ("section", 'div[class*="stat"]', 'div[class*="Stat"]'),
    ) -> None:
        self._label = label
        self._selector = ", ".join(container_selectors)

    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        for section in snapshot.dom.select(self._selector):
            text = visible_text(section)
            if self._label not in text:
                continue
            pair = _pair_from_text(text)
            if pair is not None:
                return pair
        return None


class LandmarkStrategy(ExtractionStrategy):
    """Falls back to the page's sidebar landmark when no labelled section matched."""

    def __init__(
        self,
        landmark_selectors: Sequence[str] = (
            "aside",
            '[role="complementary"]',
            '[class*="sidebar"]',
            '[class*="Sidebar"]',
        ),
    ) -> None:
        self._selector = ", ".join(landmark_selectors)

    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        landmark = snapshot.dom.select_one(self._selector)
        if landmark is None:
            return None
        return _pair_from_text(visible_text(landmark))


class LineScanStrategy(ExtractionStrategy):
    """Line-by-line state machine over the page's visible text.

    Capturing starts at the first line equal to the label. While capturing,
    each line is matched whole against the distance and duration line
    patterns; the first hit of each is kept and the scan stops once both
    are known. There is no bound on how far below the label a value may
    sit, so an unrelated number lower on the page can be picked up."""

    def __init__(self, label: str = DEFAULT_SECTION_LABEL) -> None:
        self._label = label

    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        capturing = False
        distance = None
        duration = None
        for raw_line in snapshot.text.splitlines():
            line = raw_line.strip()
            if not capturing:
                capturing = line == self._label
                continue
            if distance is None:
                distance = match_distance_line(line)
            if duration is None:
                duration = match_duration_line(line)
            if distance is not None and duration is not None:
                value, unit = distance
                return MetricPair(distance=Quantity(value=value, unit=unit), duration=duration)
        return None


def default_strategies(label: str = DEFAULT_SECTION_LABEL) -> list[ExtractionStrategy]:
    """Most specific first, most generic last."""
    return [
        StructuredAttributeStrategy(),
        LabeledContainerStrategy(label=label),
        LandmarkStrategy(),
        LineScanStrategy(label=label),
    ]
