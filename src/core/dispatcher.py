#!/usr/bin/env -S python3 -B -u
"""
Result Renderer Dispatcher

Decides how a finished probe run is shown: a hop table followed by a short
pause when table output is preferred, nothing more when the hops were
already streamed, and in both cases an optional route report.
"""

import sys
import time
from typing import Callable, Optional, TextIO

from fasttrace.core.models import (
    DEFAULT_TABLE_PAUSE,
    Preference,
    ProbeResult,
    ProbeRunConfig,
    VantagePoint,
)
from fasttrace.core.structured_logging import get_logger
from fasttrace.renderers.printers import format_header, format_trace_banner


class ResultRendererDispatcher:
    """
    Wires the table renderer and route reporter to finished runs.

    Attributes:
        table_renderer: Callable taking a ProbeResult
        route_reporter: Callable taking (ProbeResult, dest_ip)
        table_pause: Seconds to wait after a table, 0 disables the pause
    """

    def __init__(self,
                 table_renderer: Callable[[ProbeResult], None],
                 route_reporter: Callable[[ProbeResult, str], object],
                 table_pause: float = DEFAULT_TABLE_PAUSE,
                 sleep: Optional[Callable[[float], None]] = None,
                 stream: Optional[TextIO] = None):
        self.table_renderer = table_renderer
        self.route_reporter = route_reporter
        self.table_pause = table_pause
        self.sleep = sleep if sleep is not None else time.sleep
        self.stream = stream
        self.logger = get_logger(__name__)

    @property
    def out(self) -> TextIO:
        return self.stream or sys.stdout

    def blank_line(self) -> None:
        print(file=self.out)

    def announce(self, vantage_point: VantagePoint) -> None:
        """Print the separator and header of the run about to start."""
        self.blank_line()
        print(format_header(vantage_point), file=self.out)
        print(format_trace_banner(vantage_point), file=self.out, flush=True)

    def dispatch(self, preference: Preference, config: ProbeRunConfig, result: ProbeResult) -> None:
        """Render a finished run according to the preference."""
        if preference.table_print_default:
            self.table_renderer(result)
            if self.table_pause > 0:
                self.sleep(self.table_pause)
        else:
            self.logger.trace("Hops already streamed", destination=config.dest_ip)

        self.blank_line()

        if preference.always_route_path:
            self.route_reporter(result, config.dest_ip)
