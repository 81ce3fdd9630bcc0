#!/usr/bin/env -S python3 -B -u
"""
Test suite for data models and the probe run executor.
"""

import unittest
from unittest.mock import MagicMock

from fasttrace.core.exceptions import InvalidIPError, ProbeExecutionError
from fasttrace.core.models import (
    GeoLocation,
    Hop,
    ProbeResult,
    ProbeRunConfig,
    SessionOutcome,
    SessionStatus,
    TracerouteMethod,
)
from fasttrace.executors.probe_executor import ProbeRunExecutor


class TestModels(unittest.TestCase):
    """Test model helpers."""

    def test_hop_average(self):
        hop = Hop(ttl=1, addresses=["1.1.1.1"], rtts=[1.0, None, 2.0])
        self.assertEqual(hop.avg_rtt, 1.5)
        self.assertEqual(hop.ip, "1.1.1.1")
        self.assertFalse(hop.timed_out)

    def test_result_to_dict(self):
        result = ProbeResult(
            dest_ip="1.1.1.1", method=TracerouteMethod.TCP_SYN,
            hops=(Hop(ttl=1, addresses=["1.1.1.1"], rtts=[1.0], geo=GeoLocation(asnumber="13335")),),
        )
        data = result.to_dict()
        self.assertTrue(data['reached'])
        self.assertEqual(data['method'], "tcp")
        self.assertEqual(data['hops'][0]['geo']['asnumber'], "13335")

    def test_geo_place_deduplicates(self):
        geo = GeoLocation(country="China", prov="Beijing", city="Beijing")
        self.assertEqual(geo.place, "China Beijing")
        self.assertEqual(GeoLocation(isp="Chinanet").operator, "Chinanet")

    def test_run_config_validates_address(self):
        with self.assertRaises(InvalidIPError):
            ProbeRunConfig(dest_ip="", enable_rdns=True, geo_source=None)
        with self.assertRaises(InvalidIPError):
            ProbeRunConfig(dest_ip="1.2.3", enable_rdns=True, geo_source=None)

    def test_outcome_then(self):
        first = SessionOutcome(SessionStatus.COMPLETED, 5)
        error = ProbeExecutionError("1.2.3.4", "boom")
        combined = first.then(SessionOutcome(SessionStatus.FAILED, 2, error))
        self.assertEqual(combined.runs_completed, 7)
        self.assertEqual(combined.status, SessionStatus.FAILED)
        self.assertIs(combined.error, error)
        self.assertFalse(combined.ok)


class TestProbeRunExecutor(unittest.TestCase):
    """Test conversion of engine results into outcomes."""

    def setUp(self):
        self.config = ProbeRunConfig(dest_ip="202.96.209.133", enable_rdns=False, geo_source=None)

    def test_success(self):
        result = ProbeResult(dest_ip="202.96.209.133", method=TracerouteMethod.ICMP)
        engine = MagicMock()
        engine.run.return_value = result
        outcome = ProbeRunExecutor(engine).execute("icmp", self.config)

        self.assertTrue(outcome.ok)
        self.assertIs(outcome.result, result)
        engine.run.assert_called_once_with(TracerouteMethod.ICMP, self.config)

    def test_engine_error(self):
        engine = MagicMock()
        engine.run.side_effect = ProbeExecutionError("202.96.209.133", "timeout")
        outcome = ProbeRunExecutor(engine).execute(TracerouteMethod.ICMP, self.config)

        self.assertFalse(outcome.ok)
        self.assertIsNone(outcome.result)
        self.assertIs(outcome.error, engine.run.side_effect)

    def test_unexpected_error_wrapped(self):
        engine = MagicMock()
        engine.run.side_effect = RuntimeError("socket exploded")
        outcome = ProbeRunExecutor(engine).execute(TracerouteMethod.ICMP, self.config)

        self.assertIsInstance(outcome.error, ProbeExecutionError)
        self.assertIn("socket exploded", outcome.error.message)
        self.assertIsInstance(outcome.error.cause, RuntimeError)


if __name__ == '__main__':
    unittest.main()
