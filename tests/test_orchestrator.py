"""Tests for the Orchestrator run loop."""

import datetime as dt
import json
import os
import tempfile
import unittest

from stravastats.base import SnapshotAcquirer
from stravastats.cascade import ExtractionCascade
from stravastats.config import TrackerConfig
from stravastats.exceptions import AcquisitionError, PersistenceWriteError
from stravastats.models import MetricPair, Quantity, Snapshot, Subject, SubjectState
from stravastats.orchestrator import Orchestrator
from stravastats.storage import JsonStateStore
from stravastats.strategies import ExtractionStrategy

MATT = Subject(key="matt", display_name="Matt Phippen", external_id="2844018", address="https://x.test/matt")
SCOTT = Subject(key="scott", display_name="Scott Olsen", external_id="736553", address="https://x.test/scott")

RUN_TIME = dt.datetime(2026, 10, 17, 8, 30, 0, tzinfo=dt.timezone.utc)


def _page(distance: str, duration: str) -> Snapshot:
    """Helper to build a text snapshot the line-scan strategy can read."""
    text = "\n".join(["Athlete", "Current Month", "Distance", distance, "Moving Time", duration])
    return Snapshot(address="https://x.test", html="", text=text)


class _FakeAcquirer(SnapshotAcquirer):
    """Serves canned snapshots (or raises canned errors) per address."""

    def __init__(self, pages, events=None):
        super().__init__()
        self.pages = pages
        self.events = events if events is not None else []
        self.debug_capture = None

    def fetch(self, address, options):
        self.events.append(f"acquire:{address}")
        page = self.pages[address]
        if isinstance(page, Exception):
            raise page
        return page

    def capture_debug(self, label):
        self.events.append(f"debug:{label}")
        if isinstance(self.debug_capture, Exception):
            raise self.debug_capture
        return self.debug_capture


class _SpyPacer:
    def __init__(self, events):
        self.events = events

    def wait(self):
        self.events.append("wait")
        return 0.0

    def mark_done(self):
        self.events.append("done")


class _CountingStore(JsonStateStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.saves = 0

    def save(self, now=None):
        self.saves += 1
        super().save(now)


class _FailingStore(JsonStateStore):
    def save(self, now=None):
        raise PersistenceWriteError("disk full")


class _BadValueStrategy(ExtractionStrategy):
    def extract(self, snapshot):
        return MetricPair(distance=Quantity("lots", "mi"), duration="5:12:08")


class _ExplodingCascade(ExtractionCascade):
    def extract_with_source(self, snapshot):
        raise ValueError("parser crashed")


class _OrchestratorTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "data.json")
        self.events = []

    def write_state(self, document):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(document, f)

    def read_state(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def make(self, pages, subjects=(MATT, SCOTT), store_cls=_CountingStore, **kwargs):
        config = TrackerConfig(subjects=tuple(subjects), state_path=self.path, delay_secs=0)
        store = store_cls(self.path, config.subjects, clock=lambda: RUN_TIME)
        self.acquirer = _FakeAcquirer(pages, self.events)
        orchestrator = Orchestrator(
            config,
            self.acquirer,
            store,
            pacer=_SpyPacer(self.events),
            clock=lambda: RUN_TIME,
            **kwargs,
        )
        return orchestrator, store


class TestEndToEnd(_OrchestratorTestCase):
    """Verify a full run against the state file."""

    def test_initial_state_is_updated(self):
        """Default record plus extracted stats gives the new record and a fresh timestamp."""
        self.write_state(
            {
                "lastUpdated": None,
                "matt": {"name": "Matt Phippen", "stravaId": "2844018", "distance": "0 mi", "movingTime": "0:00:00"},
            }
        )
        orchestrator, store = self.make({MATT.address: _page("42.3 mi", "5:12:08")}, subjects=(MATT,))
        summary = orchestrator.run()

        document = self.read_state()
        self.assertEqual(document["matt"]["distance"], "42.3 mi")
        self.assertEqual(document["matt"]["movingTime"], "5:12:08")
        self.assertEqual(document["lastUpdated"], "2026-10-17T08:30:00.000Z")
        self.assertEqual(store.saves, 1)
        self.assertTrue(summary.saved)
        self.assertEqual(summary.changed_count, 1)

    def test_first_run_without_state_file(self):
        orchestrator, store = self.make(
            {MATT.address: _page("42.3 mi", "5:12:08"), SCOTT.address: _page("30.1 km", "3:00:00")}
        )
        orchestrator.run()
        document = self.read_state()
        self.assertEqual(set(document), {"lastUpdated", "matt", "scott"})
        self.assertEqual(document["scott"]["distance"], "30.1 km")


class TestFailureIsolation(_OrchestratorTestCase):
    """Verify that one subject's failure never affects another."""

    def setUp(self):
        super().setUp()
        self.write_state(
            {
                "lastUpdated": "2026-10-01T00:00:00.000Z",
                "matt": {"name": "Matt Phippen", "stravaId": "2844018", "distance": "10 mi", "movingTime": "1:00:00"},
                "scott": {"name": "Scott Olsen", "stravaId": "736553", "distance": "20 mi", "movingTime": "2:00:00"},
            }
        )

    def test_acquisition_failure_skips_only_that_subject(self):
        orchestrator, store = self.make(
            {MATT.address: AcquisitionError("Timeout"), SCOTT.address: _page("25 mi", "2:30:00")}
        )
        summary = orchestrator.run()

        document = self.read_state()
        self.assertEqual(document["matt"]["distance"], "10 mi")
        self.assertEqual(document["scott"]["distance"], "25 mi")
        self.assertEqual(document["lastUpdated"], "2026-10-17T08:30:00.000Z")
        self.assertEqual(store.saves, 1)
        self.assertEqual(summary.skipped_count, 1)
        self.assertEqual(summary.acquisition_error_count, 1)

    def test_unexpected_fetch_error_is_an_acquisition_failure(self):
        orchestrator, _ = self.make({MATT.address: RuntimeError("browser crashed"), SCOTT.address: _page("20 mi", "2:00:00")})
        orchestrator.run()
        outcomes = {o.key: o for o in orchestrator.metrics.outcomes}
        self.assertEqual(outcomes["matt"].state, SubjectState.SKIPPED)
        self.assertEqual(outcomes["matt"].error_type, "AcquisitionError")

    def test_extraction_miss_keeps_record(self):
        empty = Snapshot(address="https://x.test", html="<p>Log in to see stats</p>", text="Log in to see stats")
        orchestrator, store = self.make({MATT.address: empty, SCOTT.address: _page("20 mi", "2:00:00")})
        summary = orchestrator.run()
        self.assertEqual(store.saves, 0)
        self.assertEqual(summary.extraction_miss_count, 1)
        self.assertEqual(self.read_state()["matt"]["distance"], "10 mi")

    def test_extraction_miss_requests_debug_capture(self):
        empty = Snapshot(address="https://x.test", html="<p>Log in</p>", text="Log in")
        orchestrator, _ = self.make({MATT.address: empty, SCOTT.address: _page("20 mi", "2:00:00")})
        self.acquirer.debug_capture = "/tmp/debug/strava-debug-matt.png"
        with self.assertLogs("stravastats.orchestrator", level="WARNING") as logs:
            orchestrator.run()
        self.assertIn("debug:matt", self.events)
        self.assertNotIn("debug:scott", self.events)
        self.assertTrue(any("strava-debug-matt.png" in line for line in logs.output))

    def test_failed_debug_capture_does_not_abort_run(self):
        empty = Snapshot(address="https://x.test", html="<p>Log in</p>", text="Log in")
        orchestrator, _ = self.make({MATT.address: empty, SCOTT.address: _page("25 mi", "2:30:00")})
        self.acquirer.debug_capture = OSError("read-only filesystem")
        summary = orchestrator.run()
        self.assertEqual(summary.extraction_miss_count, 1)
        self.assertEqual(summary.merged_count, 1)
        self.assertEqual(self.read_state()["scott"]["distance"], "25 mi")

    def test_malformed_extracted_value_is_skipped(self):
        orchestrator, store = self.make(
            {MATT.address: _page("x", "y"), SCOTT.address: _page("20 mi", "2:00:00")},
            cascade=ExtractionCascade([_BadValueStrategy()]),
        )
        orchestrator.run()
        outcomes = {o.key: o for o in orchestrator.metrics.outcomes}
        self.assertEqual(outcomes["matt"].state, SubjectState.SKIPPED)
        self.assertEqual(outcomes["matt"].error_type, "InvalidMetricError")
        self.assertEqual(store.saves, 0)

    def test_extraction_exception_is_skipped(self):
        orchestrator, store = self.make(
            {MATT.address: _page("1 mi", "0:10:00"), SCOTT.address: _page("2 mi", "0:20:00")},
            cascade=_ExplodingCascade(),
        )
        summary = orchestrator.run()
        self.assertEqual(summary.skipped_count, 2)
        self.assertEqual({o.error_type for o in orchestrator.metrics.outcomes}, {"ValueError"})
        self.assertEqual(store.saves, 0)


class TestNoOpAndIdempotence(_OrchestratorTestCase):
    """Verify that unchanged values never trigger a write."""

    def test_identical_values_do_not_save(self):
        document = {
            "lastUpdated": "2026-10-01T00:00:00.000Z",
            "matt": {"name": "Matt Phippen", "stravaId": "2844018", "distance": "10 mi", "movingTime": "1:00:00"},
            "scott": {"name": "Scott Olsen", "stravaId": "736553", "distance": "20 mi", "movingTime": "2:00:00"},
        }
        self.write_state(document)
        orchestrator, store = self.make(
            {MATT.address: _page("10 mi", "1:00:00"), SCOTT.address: _page("20 MI", "2:00:00")}
        )
        summary = orchestrator.run()
        self.assertEqual(store.saves, 0)
        self.assertFalse(summary.saved)
        self.assertEqual(summary.merged_count, 2)
        self.assertEqual(self.read_state(), document)

    def test_second_run_with_same_pages_does_not_save(self):
        pages = {MATT.address: _page("10 mi", "1:00:00"), SCOTT.address: _page("20 mi", "2:00:00")}
        first, first_store = self.make(pages)
        first.run()
        self.assertEqual(first_store.saves, 1)

        second, second_store = self.make(pages)
        second.run()
        self.assertEqual(second_store.saves, 0)
        self.assertEqual(self.read_state()["lastUpdated"], "2026-10-17T08:30:00.000Z")

    def test_dry_run_never_saves(self):
        orchestrator, store = self.make(
            {MATT.address: _page("10 mi", "1:00:00"), SCOTT.address: _page("20 mi", "2:00:00")},
            dry_run=True,
        )
        summary = orchestrator.run()
        self.assertEqual(store.saves, 0)
        self.assertEqual(summary.changed_count, 2)
        self.assertFalse(os.path.exists(self.path))


class TestSequencingAndErrors(_OrchestratorTestCase):
    """Verify pacing order and fatal write errors."""

    def test_subjects_are_paced_one_at_a_time(self):
        orchestrator, _ = self.make(
            {MATT.address: AcquisitionError("Timeout"), SCOTT.address: _page("20 mi", "2:00:00")}
        )
        orchestrator.run()
        self.assertEqual(
            self.events,
            [f"acquire:{MATT.address}", "done", "wait", f"acquire:{SCOTT.address}", "done"],
        )

    def test_write_failure_propagates(self):
        orchestrator, _ = self.make(
            {MATT.address: _page("10 mi", "1:00:00"), SCOTT.address: _page("20 mi", "2:00:00")},
            store_cls=_FailingStore,
        )
        with self.assertRaises(PersistenceWriteError):
            orchestrator.run()

    def test_outcomes_record_winning_strategy(self):
        orchestrator, _ = self.make({MATT.address: _page("10 mi", "1:00:00")}, subjects=(MATT,))
        orchestrator.run()
        outcome = orchestrator.metrics.outcomes[0]
        self.assertEqual(outcome.state, SubjectState.MERGED)
        self.assertEqual(outcome.strategy, "LineScanStrategy")
        self.assertEqual(outcome.pair, MetricPair(distance=Quantity("10", "mi"), duration="1:00:00"))


if __name__ == "__main__":
    unittest.main()
