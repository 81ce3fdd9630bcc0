#!/usr/bin/env -S python3 -B -u
"""
fasttrace - Interactive carrier route tester

Shows the carrier menu, loads the persisted preference and traces the
route to every vantage point of the selected carrier groups, one after
another. Hops are either streamed as they arrive or shown as a table once
each run completes, optionally followed by a route report.

Author: Network Analysis Tool
License: MIT
"""

import argparse
import dataclasses
import sys
from contextlib import nullcontext
from typing import Callable, Optional, TextIO

import colorama

from fasttrace.core.config_loader import PreferenceStore
from fasttrace.core.exceptions import ErrorCode, ErrorHandler
from fasttrace.core.live_connection import interrupt_listener
from fasttrace.core.models import SessionStatus, TracerouteMethod
from fasttrace.core.session import FastTraceSession, prompt_selection
from fasttrace.core.structured_logging import get_logger, setup_logging
from fasttrace.executors.probe_executor import ProbeEngine
from fasttrace.executors.traceroute_engine import TracerouteCommandEngine


ICMP_NOTE = ("ICMP is used for route tracing by default. "
             "Add the -T option to trace with TCP SYN instead.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fasttrace',
        description='Trace routes to well-known vantage points of the major Chinese carriers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration File Support:
  Preferences are read from a YAML file. Location precedence:
  1. $FASTTRACE_CONF environment variable
  2. ~/.fasttrace.yaml (user's home directory)
  3. ./fasttrace.yaml (current directory)

  A default file is generated when none can be read.

Exit codes:
  0: All selected runs completed
  10: Invalid input
  11: Configuration error
  12: Network error (live geolocation channel)
  16: A probe run failed
  130: Interrupted

Examples:
  %(prog)s                    # Interactive menu, ICMP probes
  %(prog)s -T                 # TCP SYN probes to port 80
  %(prog)s --select 3         # China Unicom only, no prompt
  %(prog)s --select 1 -vv     # All carriers with debug logging
        """)
    parser.add_argument('-T', '--tcp', action='store_true',
                        help='Use TCP SYN probes instead of ICMP echo')
    parser.add_argument('-v', '--verbose', action='count', default=0, dest='verbose_level',
                        help='Increase verbosity (-v info, -vv debug, -vvv trace)')
    parser.add_argument('--config', metavar='PATH',
                        help='Configuration file to use instead of the search paths')
    parser.add_argument('--no-pause', action='store_true',
                        help='Do not pause after each table')
    parser.add_argument('--select', metavar='N',
                        help='Menu choice (1-5 or group name); skips the prompt')
    return parser


@ErrorHandler.wrap_main
def run(args: argparse.Namespace,
        read: Callable[[str], str] = input,
        engine: Optional[ProbeEngine] = None,
        stream: Optional[TextIO] = None,
        channel_opener=None) -> int:
    """
    Run one fasttrace session.

    Returns:
        Exit code
    """
    out = stream or sys.stdout
    logger = get_logger(__name__)

    selection = args.select if args.select is not None else prompt_selection(read, out)

    config = PreferenceStore(args.config).load()
    if args.no_pause:
        config = dataclasses.replace(config, table_pause=0.0)
    logger.debug("Session configuration", **config.to_dict())

    if args.tcp:
        method = TracerouteMethod.TCP_SYN
    else:
        method = TracerouteMethod.ICMP
        print(ICMP_NOTE, file=out)

    session_kwargs = {}
    if channel_opener is not None:
        session_kwargs['channel_opener'] = channel_opener
    session = FastTraceSession(config, method, engine or TracerouteCommandEngine(),
                               stream=stream, **session_kwargs)

    # Ctrl-C cancels the token while a live channel is held
    listener = interrupt_listener(session.token) if session.needs_live_channel else nullcontext()
    with listener:
        outcome = session.run(selection)

    if outcome.status == SessionStatus.INTERRUPTED or session.token.cancelled:
        print("\nOperation cancelled by user", file=sys.stderr)
        return ErrorCode.INTERRUPTED
    if outcome.error is not None:
        return ErrorHandler.handle_error(outcome.error, args.verbose_level)

    logger.info(f"Session complete, {outcome.runs_completed} runs")
    return ErrorCode.SUCCESS


def main(argv=None):
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose_level)
    colorama.init()
    sys.exit(int(run(args)))


if __name__ == '__main__':
    main()
