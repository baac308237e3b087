from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import ConfigError
from .factory import ACQUIRER_KINDS
from .models import FetchOptions, Subject
from .strategies import DEFAULT_SECTION_LABEL

ENV_PREFIX = "STRAVASTATS_"

DEFAULT_SUBJECTS: Tuple[Subject, ...] = (
    Subject(
        key="matt",
        display_name="Matt Phippen",
        external_id="2844018",
        address="https://www.strava.com/athletes/2844018",
    ),
    Subject(
        key="scott",
        display_name="Scott Olsen",
        external_id="736553",
        address="https://www.strava.com/athletes/736553",
    ),
)


@dataclass(frozen=True)
class TrackerConfig:
    subjects: Tuple[Subject, ...] = DEFAULT_SUBJECTS
    state_path: str = "data.json"
    section_label: str = DEFAULT_SECTION_LABEL
    external_id_field: str = "stravaId"
    delay_secs: float = 2.0
    acquirer: str = "browser"
    fetch: FetchOptions = field(default_factory=FetchOptions)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.subjects:
            raise ConfigError("at least one subject is required")
        keys = [s.key for s in self.subjects]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigError(f"duplicate subject keys: {', '.join(duplicates)}")
        if self.delay_secs < 0:
            raise ConfigError("delay_secs must be >= 0")
        if self.acquirer not in ACQUIRER_KINDS:
            raise ConfigError(f"acquirer must be one of {', '.join(ACQUIRER_KINDS)}, got {self.acquirer!r}")
        if self.fetch.timeout_secs <= 0:
            raise ConfigError("timeout_secs must be > 0")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"log_level must be a logging level name, got {self.log_level!r}")


def _subject_from_dict(raw: Any) -> Subject:
    if not isinstance(raw, dict):
        raise ConfigError(f"subject entry must be an object, got {raw!r}")
    try:
        return Subject(
            key=str(raw["key"]),
            display_name=str(raw["name"]),
            external_id=str(raw["externalId"]),
            address=str(raw["url"]),
        )
    except KeyError as exc:
        raise ConfigError(f"subject entry missing field {exc}") from exc


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _read_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must hold a JSON object")
    return data


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> TrackerConfig:
    """Build the run configuration: defaults, then an optional JSON file, then environment overrides.

    Recognised environment variables: STRAVASTATS_STATE_PATH, STRAVASTATS_DELAY_SECS,
    STRAVASTATS_ACQUIRER, STRAVASTATS_LOG_LEVEL, STRAVASTATS_TIMEOUT_SECS,
    STRAVASTATS_DEBUG_DIR.
    """
    env = os.environ if env is None else env
    config = TrackerConfig()
    data = _read_file(path) if path else {}

    changes: Dict[str, Any] = {}
    if "subjects" in data:
        if not isinstance(data["subjects"], list):
            raise ConfigError("subjects must be a list")
        changes["subjects"] = tuple(_subject_from_dict(s) for s in data["subjects"])
    for key, attr in (
        ("statePath", "state_path"),
        ("sectionLabel", "section_label"),
        ("externalIdField", "external_id_field"),
        ("acquirer", "acquirer"),
        ("logLevel", "log_level"),
    ):
        if key in data:
            changes[attr] = str(data[key])
    if "delaySecs" in data:
        changes["delay_secs"] = _as_float("delaySecs", data["delaySecs"])

    fetch = config.fetch
    if "timeoutSecs" in data:
        fetch = replace(fetch, timeout_secs=_as_float("timeoutSecs", data["timeoutSecs"]))
    if "waitStrategy" in data:
        fetch = replace(fetch, wait_strategy=str(data["waitStrategy"]))
    if "debugDir" in data:
        fetch = replace(fetch, debug_dir=str(data["debugDir"]))

    if env.get(ENV_PREFIX + "STATE_PATH"):
        changes["state_path"] = env[ENV_PREFIX + "STATE_PATH"]
    if env.get(ENV_PREFIX + "DELAY_SECS"):
        changes["delay_secs"] = _as_float(ENV_PREFIX + "DELAY_SECS", env[ENV_PREFIX + "DELAY_SECS"])
    if env.get(ENV_PREFIX + "ACQUIRER"):
        changes["acquirer"] = env[ENV_PREFIX + "ACQUIRER"]
    if env.get(ENV_PREFIX + "LOG_LEVEL"):
        changes["log_level"] = env[ENV_PREFIX + "LOG_LEVEL"]
    if env.get(ENV_PREFIX + "TIMEOUT_SECS"):
        fetch = replace(fetch, timeout_secs=_as_float(ENV_PREFIX + "TIMEOUT_SECS", env[ENV_PREFIX + "TIMEOUT_SECS"]))
    if env.get(ENV_PREFIX + "DEBUG_DIR"):
        fetch = replace(fetch, debug_dir=env[ENV_PREFIX + "DEBUG_DIR"])

    changes["fetch"] = fetch
    return replace(config, **changes)
