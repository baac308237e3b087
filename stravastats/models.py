from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, List, Optional

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

DEFAULT_DISTANCE = "0 mi"
DEFAULT_DURATION = "0:00:00"


@dataclass(frozen=True)
class Subject:
    key: str
    display_name: str
    external_id: str
    address: str


@dataclass(frozen=True)
class FetchOptions:
    wait_strategy: str = "networkidle"
    timeout_secs: float = 30.0
    ready_selector: Optional[str] = '[class*="Stat"]'
    ready_timeout_secs: float = 10.0
    debug_dir: Optional[str] = None


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of one fetched page.

    ``text`` is the visible text of the page (what a browser reports as
    ``innerText``); ``dom`` is parsed from ``html`` on first access."""

    address: str
    html: str
    text: str = ""

    @classmethod
    def from_html(cls, address: str, html: str) -> "Snapshot":
        """Build a snapshot whose visible text is derived from the markup."""
        return cls(address=address, html=html, text=visible_text(BeautifulSoup(html, "html.parser")))

    @cached_property
    def dom(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


@dataclass(frozen=True)
class Quantity:
    value: str
    unit: str

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"


@dataclass(frozen=True)
class MetricPair:
    distance: Quantity
    duration: str


@dataclass(frozen=True)
class SubjectRecord:
    name: str
    external_id: str
    distance: str = DEFAULT_DISTANCE
    duration: str = DEFAULT_DURATION

    @classmethod
    def default_for(cls, subject: Subject) -> "SubjectRecord":
        return cls(name=subject.display_name, external_id=subject.external_id)


@dataclass
class PersistedState:
    last_updated: Optional[str] = None
    subjects: Dict[str, SubjectRecord] = field(default_factory=dict)


class SubjectState(str, enum.Enum):
    PENDING = "pending"
    ACQUIRING = "acquiring"
    EXTRACTING = "extracting"
    MERGED = "merged"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SubjectOutcome:
    key: str
    state: SubjectState
    changed: bool
    pair: Optional[MetricPair]
    error_type: Optional[str]
    latency_ms: int
    strategy: Optional[str] = None


@dataclass(frozen=True)
class RunSummary:
    total_subjects: int
    merged_count: int
    changed_count: int
    skipped_count: int
    acquisition_error_count: int
    extraction_miss_count: int
    avg_latency_ms: float
    saved: bool = False


_BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li",
    "main", "nav", "ol", "p", "pre", "section", "table", "td", "th", "tr", "ul",
}


_HIDDEN_TAGS = {"script", "style", "noscript", "template", "head"}

# source line breaks inside text are layout, not content
_WHITESPACE_RE = re.compile(r"\s+")


def visible_text(node: Tag) -> str:
    """Approximate ``innerText`` for a parsed node: block elements on their own lines."""
    parts: List[str] = []
    _collect_text(node, parts)
    lines = (" ".join(line.split()) for line in "".join(parts).splitlines())
    return "\n".join(line for line in lines if line)


def _collect_text(node: Tag, parts: List[str]) -> None:
    for child in node.children:
        if isinstance(child, NavigableString):
            if not isinstance(child, PreformattedString):
                parts.append(_WHITESPACE_RE.sub(" ", str(child)))
        elif child.name in _HIDDEN_TAGS:
            continue
        elif child.name in _BLOCK_TAGS:
            parts.append("\n")
            _collect_text(child, parts)
            parts.append("\n")
        else:
            _collect_text(child, parts)
