#!/usr/bin/env -S python3 -B -u
"""
Live geolocation channel.

A persistent WebSocket connection to the LeoMoe geolocation API. The
channel is opened once per session by the connection manager and queried
for every hop address while it is open.
"""

import json
import threading
from typing import Any, Dict, List, Optional

import websocket

from fasttrace.core.exceptions import LiveConnectionError
from fasttrace.core.structured_logging import get_logger


LEOMOE_WS_URL = "wss://api.leo.moe/v2/ipGeoWs"
CONNECT_TIMEOUT = 5.0


class LiveChannel:
    """
    Thin wrapper around a websocket-client connection.

    Queries are serialized; the server answers each IP with one JSON
    message.
    """

    def __init__(self, connection: websocket.WebSocket, endpoint: str):
        self.connection = connection
        self.endpoint = endpoint
        self.closed = False
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)

    def query(self, ip: str) -> Optional[Dict[str, Any]]:
        """Send an IP address and return the decoded reply."""
        if self.closed:
            return None
        with self._lock:
            try:
                self.connection.send(ip)
                raw = self.connection.recv()
            except Exception:
                # A late reply would be paired with the next address
                self.logger.debug("Live geolocation channel broken, closing", ip=ip)
                self.close()
                raise
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.debug("Discarding malformed geolocation reply", ip=ip)
            return None
        if not isinstance(data, dict):
            self.logger.debug("Discarding non-object geolocation reply", ip=ip)
            return None
        return data

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.connection.close()
        self.logger.debug("Closed live geolocation channel", endpoint=self.endpoint)


def open_live_channel(token: str = "", url: str = LEOMOE_WS_URL,
                      timeout: float = CONNECT_TIMEOUT) -> LiveChannel:
    """
    Open the LeoMoe WebSocket channel.

    Raises:
        LiveConnectionError: If the connection cannot be established
    """
    headers: List[str] = []
    if token:
        headers.append(f"Authorization: Bearer {token}")

    try:
        connection = websocket.create_connection(url, header=headers, timeout=timeout)
    except (websocket.WebSocketException, OSError) as e:
        raise LiveConnectionError(url, str(e), cause=e) from e

    get_logger(__name__).debug("Opened live geolocation channel", endpoint=url)
    return LiveChannel(connection, url)
