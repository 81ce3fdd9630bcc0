#!/usr/bin/env -S python3 -B -u
"""
Geolocation sources.

Each source annotates a hop address with AS, location and operator data.
Sources are looked up by name (case-insensitive) through GeoSourceResolver;
one of them, LeoMoeAPI, answers over a persistent live channel that the
session must open before the first probe run.

Lookup failures never abort a probe run: they are logged and the hop is
left without annotation.
"""

import ipaddress
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests
import websocket

from fasttrace.core.models import GeoLocation
from fasttrace.core.structured_logging import get_logger
from fasttrace.geo.live_channel import LiveChannel


IP_API_URL = "http://ip-api.com/json/{ip}"
IP_API_FIELDS = "status,message,country,regionName,city,district,isp,org,as"
IPINFO_URL = "https://ipinfo.io/{ip}/json"
HTTP_TIMEOUT = 2.0


def is_public_ip(ip: str) -> bool:
    """Return True for globally routable addresses worth looking up."""
    try:
        return ipaddress.ip_address(ip).is_global
    except ValueError:
        return False


class GeoSource(ABC):
    """Base class for geolocation sources."""

    name = "base"
    requires_live_channel = False

    def __init__(self):
        self.logger = get_logger(__name__)
        self._cache: Dict[str, Optional[GeoLocation]] = {}

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        """Return the annotation for an address, or None."""
        if not ip or not is_public_ip(ip):
            return None
        if ip not in self._cache:
            try:
                self._cache[ip] = self._lookup(ip)
            except Exception as e:
                # Enrichment never aborts a probe run
                self.logger.warning(f"{self.name} lookup failed for {ip}: {e}")
                return None
        return self._cache[ip]

    @abstractmethod
    def _lookup(self, ip: str) -> Optional[GeoLocation]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class DisabledSource(GeoSource):
    """Source used when geolocation is turned off."""

    name = "disable-geoip"

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        return None

    def _lookup(self, ip: str) -> Optional[GeoLocation]:
        return None


class IPApiSource(GeoSource):
    """ip-api.com over plain HTTP; no token required."""

    name = "IP-API.com"

    def __init__(self, session: Optional[requests.Session] = None):
        super().__init__()
        self.session = session or requests.Session()

    def _lookup(self, ip: str) -> Optional[GeoLocation]:
        try:
            response = self.session.get(
                IP_API_URL.format(ip=ip),
                params={'fields': IP_API_FIELDS},
                timeout=HTTP_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"ip-api.com lookup failed for {ip}: {e}")
            return None

        if not isinstance(data, dict):
            self.logger.debug("ip-api.com reply is not an object", ip=ip)
            return None

        if data.get('status') != 'success':
            self.logger.debug("ip-api.com returned no data", ip=ip, reason=data.get('message'))
            return None

        asnumber = (data.get('as') or '').split(' ')[0]
        return GeoLocation(
            asnumber=asnumber[2:] if asnumber.upper().startswith('AS') else asnumber,
            country=data.get('country') or '',
            prov=data.get('regionName') or '',
            city=data.get('city') or '',
            district=data.get('district') or '',
            owner=data.get('org') or '',
            isp=data.get('isp') or '',
        )


class IPInfoSource(GeoSource):
    """ipinfo.io; uses the configured token when present."""

    name = "IPInfo"

    def __init__(self, token: str = "", session: Optional[requests.Session] = None):
        super().__init__()
        self.token = token
        self.session = session or requests.Session()

    def _lookup(self, ip: str) -> Optional[GeoLocation]:
        params = {'token': self.token} if self.token else None
        try:
            response = self.session.get(IPINFO_URL.format(ip=ip), params=params, timeout=HTTP_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"ipinfo.io lookup failed for {ip}: {e}")
            return None

        if not isinstance(data, dict):
            self.logger.debug("ipinfo.io reply is not an object", ip=ip)
            return None

        # org looks like "AS4134 CHINANET-BACKBONE"
        org = data.get('org') or ''
        asnumber, _, owner = org.partition(' ')
        if not asnumber.upper().startswith('AS'):
            asnumber, owner = '', org
        return GeoLocation(
            asnumber=asnumber[2:],
            country=data.get('country') or '',
            prov=data.get('region') or '',
            city=data.get('city') or '',
            owner=owner,
        )


class LeoMoeSource(GeoSource):
    """LeoMoe geolocation API, queried over the session's live channel."""

    name = "LeoMoeAPI"
    requires_live_channel = True

    def __init__(self, channel: Optional[LiveChannel] = None):
        super().__init__()
        self.channel = channel

    def _lookup(self, ip: str) -> Optional[GeoLocation]:
        if self.channel is None or self.channel.closed:
            self.logger.debug("Live channel not open, skipping lookup", ip=ip)
            return None
        try:
            data = self.channel.query(ip)
        except (websocket.WebSocketException, OSError) as e:
            self.logger.warning(f"LeoMoeAPI lookup failed for {ip}: {e}")
            return None
        if not isinstance(data, dict) or not data:
            return None
        return _geo_from_mapping(data)


def _geo_from_mapping(data: Dict[str, Any]) -> GeoLocation:
    return GeoLocation(
        asnumber=str(data.get('asnumber') or ''),
        country=data.get('country') or '',
        prov=data.get('prov') or '',
        city=data.get('city') or '',
        district=data.get('district') or '',
        owner=data.get('owner') or '',
        isp=data.get('isp') or '',
    )


class GeoSourceResolver:
    """
    Resolve a data origin name to a geolocation source.

    Unknown names fall back to LeoMoeAPI. The live channel, once opened by
    the session, is attached with attach_channel() and handed to every
    LeoMoe source resolved afterwards.
    """

    DEFAULT = LeoMoeSource.name

    def __init__(self, token: str = "", channel: Optional[LiveChannel] = None):
        self.token = token
        self.channel = channel
        self.logger = get_logger(__name__)
        self._sources: Dict[str, GeoSource] = {}

    def _factories(self):
        return {
            LeoMoeSource.name.upper(): lambda: LeoMoeSource(self.channel),
            IPInfoSource.name.upper(): lambda: IPInfoSource(self.token),
            IPApiSource.name.upper(): lambda: IPApiSource(),
            DisabledSource.name.upper(): lambda: DisabledSource(),
        }

    def canonical_name(self, name: str) -> str:
        key = (name or '').strip().upper()
        factories = self._factories()
        if key not in factories:
            self.logger.debug(f"Unknown data origin {name!r}, using {self.DEFAULT}")
            key = self.DEFAULT.upper()
        return key

    def resolve(self, name: str) -> GeoSource:
        key = self.canonical_name(name)
        if key not in self._sources:
            self._sources[key] = self._factories()[key]()
        return self._sources[key]

    __call__ = resolve

    def requires_live_channel(self, name: str) -> bool:
        return self.resolve(name).requires_live_channel

    def attach_channel(self, channel: Optional[LiveChannel]) -> None:
        self.channel = channel
        for source in self._sources.values():
            if isinstance(source, LeoMoeSource):
                source.channel = channel
