from __future__ import annotations

from typing import Callable, Dict, Optional

from .acquirers import BrowserAcquirer, HttpAcquirer, ImpersonatingAcquirer
from .base import SnapshotAcquirer
from .models import FetchOptions

ACQUIRER_KINDS = ("browser", "impersonate", "http")


class AcquirerFactory:
    """Factory for creating snapshot acquirers by configured kind.

    "browser" renders the page (needed for dynamically rendered profiles);
    "impersonate" and "http" only fetch the served markup.
    """

    def __init__(self, options: Optional[FetchOptions] = None) -> None:
        self._options = options or FetchOptions()
        self._builders: Dict[str, Callable[[FetchOptions], SnapshotAcquirer]] = {
            "browser": lambda opts: BrowserAcquirer(options=opts),
            "impersonate": lambda opts: ImpersonatingAcquirer(options=opts),
            "http": lambda opts: HttpAcquirer(options=opts),
        }

    def create(self, kind: str) -> SnapshotAcquirer:
        builder = self._builders.get(kind)
        if builder is None:
            raise ValueError(f"Unknown acquirer kind: {kind}")
        return builder(self._options)
