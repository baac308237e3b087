"""Tests for the SnapshotAcquirer abstract class."""

import unittest

from stravastats.base import SnapshotAcquirer
from stravastats.exceptions import AcquisitionError
from stravastats.models import FetchOptions, Snapshot


class _DummyAcquirer(SnapshotAcquirer):
    def __init__(self, result=None, error=None, **kwargs):
        super().__init__(**kwargs)
        self.result = result
        self.error = error
        self.closed = False
        self.seen_options = None

    def fetch(self, address, options):
        self.seen_options = options
        if self.error is not None:
            raise self.error
        return self.result

    def close(self):
        self.closed = True


class TestAcquirerValidation(unittest.TestCase):
    """Verify that acquire() rejects unusable addresses."""

    def test_empty_address_raises(self):
        with self.assertRaises(ValueError) as ctx:
            _DummyAcquirer().acquire("")
        self.assertIn("address", str(ctx.exception).lower())

    def test_non_http_address_raises(self):
        with self.assertRaises(ValueError):
            _DummyAcquirer().acquire("file:///etc/passwd")

    def test_valid_address_passes(self):
        snapshot = Snapshot(address="https://example.com", html="")
        self.assertIs(_DummyAcquirer(result=snapshot).acquire("https://example.com"), snapshot)


class TestAcquirerErrors(unittest.TestCase):
    """Verify that acquire() reports every fetch failure as AcquisitionError."""

    def test_unexpected_exception_is_wrapped(self):
        acquirer = _DummyAcquirer(error=ConnectionError("network down"))
        with self.assertRaises(AcquisitionError) as ctx:
            acquirer.acquire("https://example.com")
        self.assertIn("ConnectionError", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)
        self.assertEqual(ctx.exception.address, "https://example.com")

    def test_acquisition_error_passes_through(self):
        original = AcquisitionError("HTTP_503", address="https://example.com", status_code=503)
        with self.assertRaises(AcquisitionError) as ctx:
            _DummyAcquirer(error=original).acquire("https://example.com")
        self.assertIs(ctx.exception, original)


class TestAcquirerOptions(unittest.TestCase):
    """Verify options handling and resource cleanup."""

    def test_default_options(self):
        acquirer = _DummyAcquirer(result=Snapshot(address="https://example.com", html=""))
        acquirer.acquire("https://example.com")
        self.assertEqual(acquirer.seen_options, FetchOptions())

    def test_custom_options_are_passed_to_fetch(self):
        options = FetchOptions(wait_strategy="load", timeout_secs=5.0)
        acquirer = _DummyAcquirer(result=Snapshot(address="https://example.com", html=""), options=options)
        acquirer.acquire("https://example.com")
        self.assertIs(acquirer.seen_options, options)

    def test_context_manager_closes(self):
        with _DummyAcquirer() as acquirer:
            pass
        self.assertTrue(acquirer.closed)

    def test_capture_debug_defaults_to_nothing(self):
        acquirer = _DummyAcquirer(options=FetchOptions(debug_dir="shots"))
        self.assertIsNone(acquirer.capture_debug("matt"))


if __name__ == "__main__":
    unittest.main()
