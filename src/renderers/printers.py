#!/usr/bin/env -S python3 -B -u
"""
Console printers for probe results.

RealtimePrinter is the streaming sink handed to the probe engine: it prints
one line per hop while the run is in progress. TablePrinter prints the whole
hop table once a run has finished.
"""

import sys
from typing import List, Optional, TextIO

from colorama import Fore, Style

from fasttrace.core.models import Hop, ProbeResult, VantagePoint, MAX_HOPS, PACKET_SIZE


def format_rtts(hop: Hop) -> str:
    """Format RTT samples as '1.23 ms / * / 4.56 ms'."""
    if not hop.rtts:
        return "*"
    return " / ".join("*" if rtt is None else f"{rtt:.2f} ms" for rtt in hop.rtts)


def format_asn(hop: Hop) -> str:
    if hop.geo and hop.geo.asnumber:
        return f"AS{hop.geo.asnumber}"
    return ""


def format_header(vantage_point: VantagePoint) -> str:
    """Highlighted header naming the location and carrier under test."""
    return (f"{Style.BRIGHT}{Fore.YELLOW}【{vantage_point.location} "
            f"{vantage_point.carrier_name}】{Style.RESET_ALL}")


def format_trace_banner(vantage_point: VantagePoint) -> str:
    return f"traceroute to {vantage_point.ip}, {MAX_HOPS} hops max, {PACKET_SIZE} byte packets"


class RealtimePrinter:
    """Streaming renderer: prints each hop as soon as it arrives."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    @property
    def out(self) -> TextIO:
        return self.stream or sys.stdout

    def __call__(self, hop: Hop) -> None:
        self.print_hop(hop)

    def print_hop(self, hop: Hop) -> None:
        if hop.timed_out:
            print(f"{hop.ttl:<3} {'*':<15}", file=self.out, flush=True)
            return

        columns = [f"{hop.ttl:<3}", f"{Fore.CYAN}{', '.join(hop.addresses):<15}{Style.RESET_ALL}"]
        asn = format_asn(hop)
        if asn:
            columns.append(f"{Fore.GREEN}{asn:<8}{Style.RESET_ALL}")
        if hop.geo:
            if hop.geo.place:
                columns.append(hop.geo.place)
            if hop.geo.operator:
                columns.append(hop.geo.operator)
        if hop.hostname:
            columns.append(f"{Fore.MAGENTA}{hop.hostname}{Style.RESET_ALL}")
        columns.append(format_rtts(hop))
        print("  ".join(columns), file=self.out, flush=True)


class TablePrinter:
    """Post-run renderer: prints an aligned hop table."""

    HEADERS = ("Hop", "IP", "Hostname", "AS", "Location", "Owner", "RTT")

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    @property
    def out(self) -> TextIO:
        return self.stream or sys.stdout

    def __call__(self, result: ProbeResult) -> None:
        self.print_table(result)

    def rows(self, result: ProbeResult) -> List[List[str]]:
        rows = []
        for hop in result.hops:
            geo = hop.geo
            rows.append([
                str(hop.ttl),
                ", ".join(hop.addresses) if hop.addresses else "*",
                hop.hostname or "",
                format_asn(hop),
                geo.place if geo else "",
                geo.operator if geo else "",
                format_rtts(hop),
            ])
        return rows

    def print_table(self, result: ProbeResult) -> None:
        rows = self.rows(result)
        widths = [len(header) for header in self.HEADERS]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))

        header = "  ".join(h.ljust(widths[i]) for i, h in enumerate(self.HEADERS))
        print(f"{Style.BRIGHT}{header.rstrip()}{Style.RESET_ALL}", file=self.out)
        print("-" * len(header.rstrip()), file=self.out)
        for row in rows:
            print("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip(), file=self.out)
        self.out.flush()
