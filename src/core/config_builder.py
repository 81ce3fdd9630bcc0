#!/usr/bin/env -S python3 -B -u
"""
Session Configuration Builder

Turns a user preference and a destination address into the configuration
of a single probe run. Probe parameters are fixed; only reverse DNS, the
geolocation source and the output mode follow the preference.
"""

from typing import Callable, Optional

from fasttrace.core.exceptions import InvalidIPError
from fasttrace.core.models import Hop, Preference, ProbeRunConfig


class SessionConfigBuilder:
    """
    Builds ProbeRunConfig values.

    Attributes:
        geo_resolver: Callable mapping a data origin name to a geo source
        streaming_renderer: Live hop renderer used when table output is off
    """

    def __init__(self, geo_resolver: Callable[[str], object],
                 streaming_renderer: Optional[Callable[[Hop], None]] = None):
        self.geo_resolver = geo_resolver
        self.streaming_renderer = streaming_renderer

    def build(self, preference: Preference, target_ip: str) -> ProbeRunConfig:
        """
        Build the run configuration for one destination.

        Raises:
            InvalidIPError: If target_ip is empty or not an IP address
        """
        if not target_ip:
            raise InvalidIPError(target_ip)

        # Streaming and table output are mutually exclusive per run
        sink = None if preference.table_print_default else self.streaming_renderer

        return ProbeRunConfig(
            dest_ip=str(target_ip),
            enable_rdns=not preference.no_rdns,
            geo_source=self.geo_resolver(preference.data_origin),
            streaming_sink=sink,
        )
