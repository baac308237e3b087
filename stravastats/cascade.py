from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .models import MetricPair, Snapshot
from .strategies import ExtractionStrategy, default_strategies

logger = logging.getLogger(__name__)


class ExtractionCascade:
    """Runs extraction strategies in priority order; the first non-empty result wins.

    Results are never combined across strategies. An exception inside one
    strategy counts as that strategy's miss and the cascade moves on."""

    def __init__(self, strategies: Optional[Iterable[ExtractionStrategy]] = None) -> None:
        self._strategies: List[ExtractionStrategy] = (
            list(strategies) if strategies is not None else default_strategies()
        )

    @property
    def strategies(self) -> Tuple[ExtractionStrategy, ...]:
        return tuple(self._strategies)

    def extract(self, snapshot: Snapshot) -> Optional[MetricPair]:
        pair, _ = self.extract_with_source(snapshot)
        return pair

    def extract_with_source(self, snapshot: Snapshot) -> Tuple[Optional[MetricPair], Optional[str]]:
        """Return the winning pair together with the name of the strategy that produced it."""
        for strat in self._strategies:
            try:
                pair = strat.extract(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s failed on %s: %s", strat.name, snapshot.address, exc)
                continue
            if pair is not None:
                logger.debug("%s matched on %s", strat.name, snapshot.address)
                return pair, strat.name
            logger.debug("%s found nothing on %s", strat.name, snapshot.address)
        return None, None
