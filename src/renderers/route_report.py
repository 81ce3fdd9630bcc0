#!/usr/bin/env -S python3 -B -u
"""
Route Report - Geolocation summary of a traced path

Collapses consecutive hops that share an autonomous system and location
into segments and prints the resulting chain, e.g.

    AS4134 CHINANET [China Shanghai] -> AS4809 CN2 [China Shanghai]

Hops without a geolocation annotation (timeouts, private addresses) do
not break a segment.
"""

import sys
from dataclasses import dataclass, field
from typing import List, Optional, TextIO, Tuple

from colorama import Fore, Style

from fasttrace.core.models import ProbeResult


@dataclass
class RouteSegment:
    """A run of consecutive hops inside one AS and location."""
    asnumber: str
    place: str
    operator: str
    first_ttl: int
    last_ttl: int
    addresses: List[str] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.asnumber, self.place, self.operator)

    def describe(self) -> str:
        parts = []
        if self.asnumber:
            parts.append(f"AS{self.asnumber}")
        if self.operator:
            parts.append(self.operator)
        if self.place:
            parts.append(f"[{self.place}]")
        return " ".join(parts) or "unknown"


@dataclass
class RouteReport:
    dest_ip: str
    segments: List[RouteSegment] = field(default_factory=list)
    reached: bool = False


class RouteReporter:
    """Builds and prints route reports keyed by destination IP."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    @property
    def out(self) -> TextIO:
        return self.stream or sys.stdout

    def __call__(self, result: ProbeResult, dest_ip: str) -> RouteReport:
        report = self.build(result, dest_ip)
        self.print_report(report)
        return report

    def build(self, result: ProbeResult, dest_ip: str) -> RouteReport:
        report = RouteReport(dest_ip=dest_ip, reached=result.reached)
        for hop in result.hops:
            if hop.geo is None or hop.ip is None:
                continue
            key = (hop.geo.asnumber, hop.geo.place, hop.geo.operator)
            if report.segments and report.segments[-1].key == key:
                segment = report.segments[-1]
                segment.last_ttl = hop.ttl
            else:
                segment = RouteSegment(
                    asnumber=hop.geo.asnumber,
                    place=hop.geo.place,
                    operator=hop.geo.operator,
                    first_ttl=hop.ttl,
                    last_ttl=hop.ttl,
                )
                report.segments.append(segment)
            segment.addresses.extend(a for a in hop.addresses if a not in segment.addresses)
        return report

    def print_report(self, report: RouteReport) -> None:
        print(f"{Style.BRIGHT}{Fore.CYAN}Route report for {report.dest_ip}{Style.RESET_ALL}", file=self.out)
        if not report.segments:
            print("  No geolocation data available for this route", file=self.out)
            print(file=self.out)
            return

        for index, segment in enumerate(report.segments):
            hops = (f"hop {segment.first_ttl}" if segment.first_ttl == segment.last_ttl
                    else f"hops {segment.first_ttl}-{segment.last_ttl}")
            prefix = "  " if index == 0 else "  -> "
            print(f"{prefix}{segment.describe()} ({hops})", file=self.out)

        if not report.reached:
            print(f"  {Fore.RED}destination not reached{Style.RESET_ALL}", file=self.out)
        print(file=self.out)
        self.out.flush()
