#!/usr/bin/env -S python3 -B -u
"""
Traceroute Engine - Probe Execution via the system traceroute tool

This module drives the Linux traceroute(8) binary to run one probe against
one destination and parses its output line by line, so hops can be
streamed to a live renderer while the run is still in progress.

Key features:
- ICMP echo (-I) and TCP SYN (-T) probing
- Parallel probes (-N) and per-probe wait time (-w) from the run config
- Reverse DNS lookups through getent hosts, when enabled
- Geolocation annotation through the configured geo source

Author: Network Analysis Tool
License: MIT
"""

import ipaddress
import subprocess
import threading
from typing import Dict, List, Optional

from fasttrace.core.exceptions import CommandExecutionError, ProbeExecutionError
from fasttrace.core.models import Hop, ProbeResult, ProbeRunConfig, TracerouteMethod
from fasttrace.core.structured_logging import get_logger
from fasttrace.executors.probe_executor import ProbeEngine


TRACEROUTE_BIN = "traceroute"
# Extra time on top of the worst case probe time before a run is killed
RUN_GRACE_SECONDS = 30.0


class TracerouteCommandEngine(ProbeEngine):
    """
    Probe engine backed by the traceroute command.

    Attributes:
        binary: Path or name of the traceroute executable
        use_sudo: Prefix the command with ``sudo -n`` (TCP SYN needs raw sockets)
    """

    def __init__(self, binary: str = TRACEROUTE_BIN, use_sudo: bool = False):
        self.binary = binary
        self.use_sudo = use_sudo
        self.logger = get_logger(__name__)
        self._rdns_cache: Dict[str, Optional[str]] = {}

    def build_command(self, method: TracerouteMethod, config: ProbeRunConfig) -> List[str]:
        """Build the traceroute command line for a run configuration."""
        cmd = []
        if self.use_sudo:
            cmd.extend(['sudo', '-n'])
        cmd.append(self.binary)

        if ipaddress.ip_address(config.dest_ip).version == 6:
            cmd.append('-6')

        cmd.extend([
            '-n',
            '-f', str(config.begin_hop),
            '-m', str(config.max_hops),
            '-q', str(config.num_measurements),
            '-N', str(config.parallel_requests),
            '-w', f"{config.timeout:g}",
        ])

        if method == TracerouteMethod.TCP_SYN:
            cmd.extend(['-T', '-p', str(config.dest_port)])
        else:
            cmd.append('-I')

        cmd.append(config.dest_ip)
        return cmd

    def run(self, method: TracerouteMethod, config: ProbeRunConfig) -> ProbeResult:
        cmd = self.build_command(method, config)
        self.logger.log_command_execution(cmd)

        run_limit = (config.max_hops * config.num_measurements * config.timeout) + RUN_GRACE_SECONDS
        hops: List[Hop] = []

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as e:
            raise ProbeExecutionError(config.dest_ip, f"{self.binary} not found", cause=e) from e
        except OSError as e:
            raise ProbeExecutionError(config.dest_ip, str(e), cause=e) from e

        # Kill the run even when traceroute stops writing output
        expired = threading.Event()

        def _expire():
            expired.set()
            proc.kill()

        watchdog = threading.Timer(run_limit, _expire)
        watchdog.daemon = True
        watchdog.start()
        try:
            for line in proc.stdout:
                hop = parse_hop_line(line)
                if hop is None:
                    continue
                self._enrich(hop, config)
                self.logger.log_hop(hop.ttl, hop.ip, rtt=hop.avg_rtt)
                hops.append(hop)
                if config.streaming_sink is not None:
                    config.streaming_sink(hop)
            stderr = proc.stderr.read() if proc.stderr else ""
            returncode = proc.wait()
        finally:
            watchdog.cancel()
            if proc.poll() is None:
                proc.kill()
                proc.wait()

        if expired.is_set():
            raise ProbeExecutionError(config.dest_ip, f"run exceeded {run_limit:.0f}s",
                                      details={"command": " ".join(cmd)})

        self.logger.log_command_execution(cmd, success=returncode == 0, returncode=returncode)

        if returncode != 0 and not hops:
            reason = (stderr or "").strip() or f"{self.binary} exited with code {returncode}"
            failure = CommandExecutionError(" ".join(cmd), returncode, (stderr or "").strip())
            raise ProbeExecutionError(config.dest_ip, reason, details={"command": " ".join(cmd)},
                                      cause=failure)

        return ProbeResult(dest_ip=config.dest_ip, method=TracerouteMethod(method), hops=tuple(hops))

    def _enrich(self, hop: Hop, config: ProbeRunConfig) -> None:
        if hop.ip is None:
            return
        if config.enable_rdns:
            hop.hostname = self._reverse_dns(hop.ip)
        if config.geo_source is not None:
            hop.geo = config.geo_source.lookup(hop.ip)

    def _reverse_dns(self, ip: str) -> Optional[str]:
        """
        Perform reverse hostname lookup for an IP address using getent hosts.

        Args:
            ip: IP address to perform reverse lookup on

        Returns:
            Hostname if lookup succeeds, None otherwise
        """
        if ip in self._rdns_cache:
            return self._rdns_cache[ip]

        hostname = None
        try:
            result = subprocess.run(
                ['getent', 'hosts', ip],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode == 0 and result.stdout.strip():
                # getent output: "IP hostname [aliases...]"
                parts = result.stdout.strip().split()
                if len(parts) >= 2:
                    hostname = parts[1]
        except (subprocess.TimeoutExpired, FileNotFoundError):
            hostname = None

        self._rdns_cache[ip] = hostname
        return hostname


def _is_ip(token: str) -> bool:
    try:
        ipaddress.ip_address(token)
        return True
    except ValueError:
        return False


def parse_hop_line(line: str) -> Optional[Hop]:
    """
    Parse one hop line of traceroute -n output.

    Examples of accepted lines:
        " 1  192.168.1.1  0.512 ms  0.430 ms  0.401 ms"
        " 2  * * *"
        " 3  10.0.0.1  1.203 ms 10.0.0.2  1.514 ms *"
        " 9  202.97.1.1  35.1 ms !H  *  35.4 ms !H"

    Returns:
        A Hop, or None for header and unparsable lines
    """
    parts = line.split()
    if not parts or not parts[0].isdigit():
        return None

    hop = Hop(ttl=int(parts[0]))
    tokens = parts[1:]
    for index, token in enumerate(tokens):
        if token == '*':
            hop.rtts.append(None)
        elif _is_ip(token):
            if token not in hop.addresses:
                hop.addresses.append(token)
        elif token == 'ms' or token.startswith('!'):
            continue
        else:
            try:
                rtt = float(token)
            except ValueError:
                continue
            if index + 1 < len(tokens) and tokens[index + 1] == 'ms':
                hop.rtts.append(rtt)
    return hop
