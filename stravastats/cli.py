from __future__ import annotations

import argparse
import datetime as _dt
import json
import sys
from dataclasses import replace
from typing import Optional, Sequence

from .config import load_config
from .exceptions import ConfigError, PersistenceWriteError
from .factory import ACQUIRER_KINDS, AcquirerFactory
from .logging_setup import setup_logging
from .orchestrator import Orchestrator
from .storage import JsonStateStore


def run(
    config_path: Optional[str],
    state_path: Optional[str],
    acquirer_kind: Optional[str],
    delay: Optional[float],
    log_level: Optional[str],
    dry_run: bool,
    debug_dir: Optional[str] = None,
    outcomes_json: bool = False,
) -> int:
    config = load_config(config_path)
    overrides = {}
    if state_path:
        overrides["state_path"] = state_path
    if acquirer_kind:
        overrides["acquirer"] = acquirer_kind
    if delay is not None:
        overrides["delay_secs"] = delay
    if log_level:
        overrides["log_level"] = log_level
    if debug_dir:
        overrides["fetch"] = replace(config.fetch, debug_dir=debug_dir)
    if overrides:
        config = replace(config, **overrides)

    setup_logging(config.log_level)

    print("Starting Strava scraper...")
    print(f"Time: {_dt.datetime.now(_dt.timezone.utc).isoformat()}")

    store = JsonStateStore(
        config.state_path,
        config.subjects,
        external_id_field=config.external_id_field,
    )
    with AcquirerFactory(config.fetch).create(config.acquirer) as acquirer:
        orchestrator = Orchestrator(config, acquirer, store, dry_run=dry_run)
        summary = orchestrator.run()

    for outcome in orchestrator.metrics.outcomes:
        if outcome.pair is not None:
            detail = f"{outcome.pair.distance}, {outcome.pair.duration}"
        else:
            detail = f"skipped ({outcome.error_type})"
        print(f"subject={outcome.key} state={outcome.state.value} changed={outcome.changed} {detail}")

    if summary.saved:
        print("\nData updated successfully!")
        print(json.dumps(store.to_dict(), indent=2, ensure_ascii=False))
    elif summary.changed_count and dry_run:
        print("\nDry run: updates detected but not written.")
        print(json.dumps(store.to_dict(), indent=2, ensure_ascii=False))
    else:
        print("\nNo updates detected, keeping existing data.")

    if outcomes_json:
        print("\nOutcomes:")
        print(json.dumps(orchestrator.metrics.export_json(), indent=2))

    print(
        f"\nDONE: merged={summary.merged_count} changed={summary.changed_count} "
        f"skipped={summary.skipped_count} total={summary.total_subjects}"
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="stravastats",
        description="Update monthly challenge stats from athlete profile pages",
    )
    parser.add_argument("--config", default=None, help="Path to a JSON config file")
    parser.add_argument("--state", default=None, help="Path to the state JSON file (default: data.json)")
    parser.add_argument(
        "--acquirer",
        choices=ACQUIRER_KINDS,
        default=None,
        help="How pages are fetched (default: browser)",
    )
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between athletes")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument("--dry-run", action="store_true", help="Extract and compare, but never write the state file")
    parser.add_argument(
        "--debug-dir",
        default=None,
        help="Save a page screenshot here when stats cannot be extracted (browser acquirer only)",
    )
    parser.add_argument(
        "--outcomes-json",
        action="store_true",
        help="Print every subject's outcome as JSON after the run",
    )

    args = parser.parse_args(argv)

    try:
        return run(
            config_path=args.config,
            state_path=args.state,
            acquirer_kind=args.acquirer,
            delay=args.delay,
            log_level=args.log_level,
            dry_run=args.dry_run,
            debug_dir=args.debug_dir,
            outcomes_json=args.outcomes_json,
        )
    except (ConfigError, PersistenceWriteError) as exc:
        print(f"Scraper failed: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # noqa: BLE001
        print(f"Scraper failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
