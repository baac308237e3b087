from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlsplit

from .exceptions import AcquisitionError
from .models import FetchOptions, Snapshot


class SnapshotAcquirer(ABC):
    """Abstract base class for everything that turns an address into a Snapshot.

    acquire() is the entry point: it validates the address, calls fetch(),
    and reports every failure as AcquisitionError so callers only have one
    error type to recover from.
    """

    def __init__(self, options: Optional[FetchOptions] = None) -> None:
        self._options = options or FetchOptions()

    @property
    def options(self) -> FetchOptions:
        return self._options

    def acquire(self, address: str) -> Snapshot:
        self.validate(address)
        try:
            return self.fetch(address, self._options)
        except AcquisitionError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise AcquisitionError(f"{type(exc).__name__}: {exc}", address=address) from exc

    def validate(self, address: str) -> None:
        if not address:
            raise ValueError("address is required")
        if urlsplit(address).scheme not in ("http", "https"):
            raise ValueError(f"address must be an http(s) URL: {address}")

    @abstractmethod
    def fetch(self, address: str, options: FetchOptions) -> Snapshot:
        ...

    def capture_debug(self, label: str) -> Optional[str]:
        """Save a debugging artifact of the last fetched page, if supported.

        Returns the path written, or None. The base implementation has
        nothing to capture."""
        return None

    def close(self) -> None:
        """Release any held resources (browsers, sessions)."""

    def __enter__(self) -> "SnapshotAcquirer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
