#!/usr/bin/env -S python3 -B -u
"""
Test suite for geolocation sources and the live channel.

HTTP calls and the WebSocket connection are mocked.
"""

import io
import json
import unittest
from unittest.mock import MagicMock, patch

import requests
import websocket

from fasttrace.core.exceptions import LiveConnectionError
from fasttrace.core.models import FastTraceConfig, Preference, SessionStatus, TracerouteMethod
from fasttrace.core.session import FastTraceSession
from fasttrace.geo.live_channel import LiveChannel, open_live_channel
from fasttrace.geo.sources import (
    DisabledSource,
    GeoSourceResolver,
    IPApiSource,
    IPInfoSource,
    LeoMoeSource,
    is_public_ip,
)

from probe_fakes import RecordingProbeEngine


def json_response(data):
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


class TestResolver(unittest.TestCase):
    """Test data origin name resolution."""

    def setUp(self):
        self.resolver = GeoSourceResolver(token="tok")

    def test_known_names_case_insensitive(self):
        self.assertIsInstance(self.resolver("ipinfo"), IPInfoSource)
        self.assertIsInstance(self.resolver("IP-API.com"), IPApiSource)
        self.assertIsInstance(self.resolver("DISABLE-GEOIP"), DisabledSource)
        self.assertIsInstance(self.resolver("leomoeapi"), LeoMoeSource)

    def test_unknown_falls_back_to_leomoe(self):
        self.assertIsInstance(self.resolver("nonsense"), LeoMoeSource)
        self.assertTrue(self.resolver.requires_live_channel("nonsense"))

    def test_sources_are_cached(self):
        self.assertIs(self.resolver("IPInfo"), self.resolver("ipinfo"))

    def test_live_channel_requirement(self):
        self.assertTrue(self.resolver.requires_live_channel("LeoMoeAPI"))
        self.assertFalse(self.resolver.requires_live_channel("IPInfo"))
        self.assertFalse(self.resolver.requires_live_channel("disable-geoip"))

    def test_token_passed_to_ipinfo(self):
        self.assertEqual(self.resolver("IPInfo").token, "tok")

    def test_attach_channel(self):
        source = self.resolver("LeoMoeAPI")
        channel = MagicMock()
        self.resolver.attach_channel(channel)
        self.assertIs(source.channel, channel)
        self.resolver.attach_channel(None)
        self.assertIsNone(source.channel)


class TestSources(unittest.TestCase):
    """Test individual source lookups."""

    def test_private_addresses_skipped(self):
        self.assertFalse(is_public_ip("192.168.1.1"))
        self.assertFalse(is_public_ip("garbage"))
        self.assertTrue(is_public_ip("202.96.209.133"))

        session = MagicMock()
        self.assertIsNone(IPApiSource(session).lookup("10.0.0.1"))
        session.get.assert_not_called()

    def test_ip_api(self):
        session = MagicMock()
        session.get.return_value = json_response({
            'status': 'success', 'country': 'China', 'regionName': 'Shanghai',
            'city': 'Shanghai', 'isp': 'Chinanet', 'org': 'China Telecom',
            'as': 'AS4812 China Telecom (Group)',
        })
        geo = IPApiSource(session).lookup("202.96.209.133")
        self.assertEqual(geo.asnumber, "4812")
        self.assertEqual(geo.place, "China Shanghai")
        self.assertEqual(geo.operator, "China Telecom")

    def test_ip_api_failure_status(self):
        session = MagicMock()
        session.get.return_value = json_response({'status': 'fail', 'message': 'reserved range'})
        self.assertIsNone(IPApiSource(session).lookup("202.96.209.133"))

    def test_http_error_is_not_fatal(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        self.assertIsNone(IPInfoSource(session=session).lookup("202.96.209.133"))

    def test_ipinfo(self):
        session = MagicMock()
        session.get.return_value = json_response({
            'country': 'CN', 'region': 'Beijing', 'city': 'Beijing',
            'org': 'AS4808 China Unicom Beijing Province Network',
        })
        geo = IPInfoSource("tok", session).lookup("202.106.50.1")
        self.assertEqual(geo.asnumber, "4808")
        self.assertEqual(geo.owner, "China Unicom Beijing Province Network")
        self.assertEqual(session.get.call_args.kwargs['params'], {'token': 'tok'})

    def test_lookups_are_cached(self):
        session = MagicMock()
        session.get.return_value = json_response({'status': 'success', 'as': 'AS9808'})
        source = IPApiSource(session)
        source.lookup("221.179.155.161")
        source.lookup("221.179.155.161")
        session.get.assert_called_once()

    def test_leomoe_without_channel(self):
        self.assertIsNone(LeoMoeSource().lookup("202.96.209.133"))

    def test_leomoe_over_channel(self):
        channel = MagicMock()
        channel.closed = False
        channel.query.return_value = {'asnumber': 4134, 'country': 'China', 'prov': 'Zhejiang',
                                      'city': 'Hangzhou', 'owner': 'CHINANET'}
        geo = LeoMoeSource(channel).lookup("202.101.172.35")
        self.assertEqual(geo.asnumber, "4134")
        self.assertEqual(geo.place, "China Zhejiang Hangzhou")

    def test_leomoe_channel_error(self):
        channel = MagicMock()
        channel.closed = False
        channel.query.side_effect = websocket.WebSocketConnectionClosedException("closed")
        self.assertIsNone(LeoMoeSource(channel).lookup("202.101.172.35"))

    def test_non_object_reply_ignored(self):
        session = MagicMock()
        session.get.return_value = json_response(["not", "an", "object"])
        self.assertIsNone(IPApiSource(session).lookup("202.96.209.133"))
        self.assertIsNone(IPInfoSource(session=session).lookup("202.96.209.133"))

    def test_leomoe_non_object_reply(self):
        connection = MagicMock()
        connection.recv.return_value = '"rate limited"'
        channel = LiveChannel(connection, "wss://example")
        self.assertIsNone(LeoMoeSource(channel).lookup("202.101.172.35"))

    def test_unexpected_source_error_yields_no_annotation(self):
        source = IPApiSource(MagicMock())
        with patch.object(IPApiSource, "_lookup", side_effect=KeyError("asnumber")):
            self.assertIsNone(source.lookup("202.96.209.133"))

    def test_disabled(self):
        self.assertIsNone(DisabledSource().lookup("202.101.172.35"))


class TestLiveChannel(unittest.TestCase):
    """Test the WebSocket wrapper."""

    def test_query_and_close(self):
        connection = MagicMock()
        connection.recv.return_value = json.dumps({'asnumber': '4134'})
        channel = LiveChannel(connection, "wss://example")

        self.assertEqual(channel.query("1.2.3.4"), {'asnumber': '4134'})
        connection.send.assert_called_once_with("1.2.3.4")

        channel.close()
        channel.close()
        connection.close.assert_called_once()
        self.assertIsNone(channel.query("1.2.3.4"))

    def test_malformed_reply(self):
        connection = MagicMock()
        connection.recv.return_value = "not json"
        self.assertIsNone(LiveChannel(connection, "wss://example").query("1.2.3.4"))

    def test_timeout_breaks_channel(self):
        connection = MagicMock()
        connection.recv.side_effect = [
            websocket.WebSocketTimeoutException("timed out"),
            json.dumps({'asnumber': '1111', 'city': 'A'}),
            json.dumps({'asnumber': '15169', 'city': 'B'}),
        ]
        channel = LiveChannel(connection, "wss://example")
        source = LeoMoeSource(channel)

        self.assertIsNone(source.lookup("1.1.1.1"))
        self.assertTrue(channel.closed)
        connection.close.assert_called_once()
        # The late reply for 1.1.1.1 is never read for another address
        self.assertIsNone(source.lookup("8.8.8.8"))
        self.assertEqual(connection.recv.call_count, 1)

    def test_non_object_reply(self):
        connection = MagicMock()
        connection.recv.return_value = "[1, 2]"
        self.assertIsNone(LiveChannel(connection, "wss://example").query("1.2.3.4"))

    @patch('fasttrace.geo.live_channel.websocket.create_connection')
    def test_open_sends_token(self, mock_create):
        channel = open_live_channel("abc", url="wss://example")
        mock_create.assert_called_once_with(
            "wss://example", header=["Authorization: Bearer abc"], timeout=5.0)
        self.assertIs(channel.connection, mock_create.return_value)

    @patch('fasttrace.geo.live_channel.websocket.create_connection')
    def test_open_failure(self, mock_create):
        mock_create.side_effect = ConnectionRefusedError("refused")
        with self.assertRaises(LiveConnectionError) as ctx:
            open_live_channel(url="wss://example")
        self.assertEqual(ctx.exception.details['endpoint'], "wss://example")


class TestEnrichmentDuringSession(unittest.TestCase):
    """Failed geolocation lookups must not end the session."""

    def run_session(self, data_origin, channel_opener=None):
        def enrich(method, config):
            config.geo_source.lookup(config.dest_ip)

        engine = RecordingProbeEngine(on_run=enrich)
        config = FastTraceConfig(preference=Preference(data_origin=data_origin), table_pause=0)
        kwargs = {"channel_opener": channel_opener} if channel_opener else {}
        session = FastTraceSession(config, TracerouteMethod.ICMP, engine, stream=io.StringIO(), **kwargs)
        return session.run("4"), engine

    @patch.object(requests.Session, "get")
    def test_ip_api_quota_reply(self, mock_get):
        mock_get.return_value = json_response({'status': 'fail', 'message': 'quota'})
        outcome, engine = self.run_session("IP-API.com")

        self.assertEqual(outcome.status, SessionStatus.COMPLETED)
        self.assertEqual(outcome.runs_completed, 4)
        self.assertEqual(mock_get.call_count, 4)

    def test_leomoe_string_reply(self):
        connection = MagicMock()
        connection.recv.return_value = '"rate limited"'
        outcome, _ = self.run_session("LeoMoeAPI", lambda: LiveChannel(connection, "wss://example"))

        self.assertEqual(outcome.status, SessionStatus.COMPLETED)
        self.assertEqual(outcome.runs_completed, 4)
        connection.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
