#!/usr/bin/env -S python3 -B -u
"""
Session Sequencer and Session Driver

SessionSequencer runs the vantage points of one or more carrier groups
strictly one after another: build the run configuration, execute the probe,
render the result, move on. The first failed probe stops the session; the
failure travels back as a SessionOutcome instead of ending the process.

FastTraceSession wraps the sequencer with the live connection manager and
tracks the session state machine:

    IDLE -> MENU_PROMPT -> (CONNECTION_OPEN) -> RUNNING
         -> SESSION_COMPLETE | FATAL_ABORT
"""

import sys
from functools import partial
from typing import Callable, List, Optional, TextIO

from fasttrace.core.catalog import TargetCatalog
from fasttrace.core.config_builder import SessionConfigBuilder
from fasttrace.core.dispatcher import ResultRendererDispatcher
from fasttrace.core.exceptions import LiveConnectionError
from fasttrace.core.live_connection import CancellationToken, LiveConnectionManager
from fasttrace.core.models import (
    CarrierGroup,
    FastTraceConfig,
    ProbeOutcome,
    SessionOutcome,
    SessionState,
    SessionStatus,
    TracerouteMethod,
    VantagePoint,
)
from fasttrace.core.structured_logging import get_logger
from fasttrace.executors.probe_executor import ProbeEngine, ProbeRunExecutor
from fasttrace.geo.live_channel import open_live_channel
from fasttrace.geo.sources import GeoSourceResolver
from fasttrace.renderers.printers import RealtimePrinter, TablePrinter
from fasttrace.renderers.route_report import RouteReporter


ALL = "all"

MENU_CODES = {
    "1": None,
    "2": CarrierGroup.TELECOM,
    "3": CarrierGroup.UNICOM,
    "4": CarrierGroup.MOBILE,
    "5": CarrierGroup.EDUCATION,
}

MENU_TEXT = (
    "Which carrier routes would you like to test?\n"
    "1. All\n"
    "2. China Telecom\n"
    "3. China Unicom\n"
    "4. China Mobile\n"
    "5. Education Network"
)
MENU_PROMPT = "Please choose an option: "


def prompt_selection(read: Callable[[str], str] = input, stream: Optional[TextIO] = None) -> str:
    """Show the carrier menu and read the user's choice; EOF reads as the default."""
    print(MENU_TEXT, file=stream or sys.stdout)
    try:
        return read(MENU_PROMPT)
    except EOFError:
        return ""


# Sentinel so callers can pass channel_opener=None to disable the live channel
_AUTO = object()


def resolve_selection(code: Optional[str], stream: Optional[TextIO] = None) -> Optional[CarrierGroup]:
    """
    Map a menu code or group name to a carrier group.

    Returns None for "all". Empty input is the default, all. Other unknown
    input also selects all, with a notice on the output stream.
    """
    text = (code or "").strip()
    if not text:
        return None
    if text in MENU_CODES:
        return MENU_CODES[text]
    if text.lower() == ALL:
        return None
    for group in CarrierGroup:
        if text.lower() == group.value.lower():
            return group

    print(f"Unknown selection {text!r}, testing all carriers", file=stream or sys.stdout)
    get_logger(__name__).warning(f"Unknown selection {code!r}, testing all carriers")
    return None


class SessionSequencer:
    """
    Runs catalog groups in a fixed order.

    Attributes:
        config: Immutable session configuration
        method: Probe method used for every target
        checkpoint: Optional callable consulted before each target; returning
            False stops the session as interrupted
    """

    def __init__(self,
                 config: FastTraceConfig,
                 method: TracerouteMethod,
                 builder: SessionConfigBuilder,
                 executor: ProbeRunExecutor,
                 dispatcher: ResultRendererDispatcher,
                 catalog: Optional[TargetCatalog] = None,
                 checkpoint: Optional[Callable[[], bool]] = None):
        self.config = config
        self.method = TracerouteMethod(method)
        self.builder = builder
        self.executor = executor
        self.dispatcher = dispatcher
        self.catalog = catalog or TargetCatalog()
        self.checkpoint = checkpoint
        self.logger = get_logger(__name__)

    def run_target(self, vantage_point: VantagePoint) -> ProbeOutcome:
        """Probe a single vantage point and render the result."""
        preference = self.config.preference
        self.logger.log_probe_run(vantage_point.location, vantage_point.carrier_name,
                                  vantage_point.ip, method=self.method.value)
        self.dispatcher.announce(vantage_point)

        run_config = self.builder.build(preference, vantage_point.ip)
        outcome = self.executor.execute(self.method, run_config)
        if outcome.ok:
            self.dispatcher.dispatch(preference, run_config, outcome.result)
        return outcome

    def run_group(self, group: CarrierGroup) -> SessionOutcome:
        """Run every vantage point of one group, in declaration order."""
        group = CarrierGroup(group)
        completed = 0
        for vantage_point in self.catalog.group(group):
            if self.checkpoint is not None and not self.checkpoint():
                self.logger.info(f"Session interrupted before {vantage_point.location} "
                                 f"{vantage_point.carrier_name}")
                return SessionOutcome(SessionStatus.INTERRUPTED, completed)

            outcome = self.run_target(vantage_point)
            if not outcome.ok:
                self.logger.debug("Stopping session after failed probe",
                                  group=group.value, destination=vantage_point.ip)
                return SessionOutcome(SessionStatus.FAILED, completed, outcome.error)
            completed += 1

        return SessionOutcome(SessionStatus.COMPLETED, completed)

    def run_all(self) -> SessionOutcome:
        """Run Telecom, Unicom, Mobile and Education, separated by blank lines."""
        outcome = SessionOutcome(SessionStatus.COMPLETED)
        for index, group in enumerate(self.catalog.all_groups()):
            if index:
                self.dispatcher.blank_line()
            outcome = outcome.then(self.run_group(group))
            if not outcome.ok:
                break
        return outcome

    def run_selection(self, code: Optional[str]) -> SessionOutcome:
        group = resolve_selection(code, self.dispatcher.out)
        if group is None:
            return self.run_all()
        return self.run_group(group)


class FastTraceSession:
    """
    One interactive fasttrace session.

    Wires the configuration builder, probe executor and renderers around a
    SessionSequencer, and keeps the live geolocation channel open for the
    duration of the run when the configured data origin needs one.
    """

    def __init__(self,
                 config: FastTraceConfig,
                 method: TracerouteMethod,
                 engine: ProbeEngine,
                 resolver: Optional[GeoSourceResolver] = None,
                 dispatcher: Optional[ResultRendererDispatcher] = None,
                 streaming_renderer: Optional[Callable] = None,
                 channel_opener=_AUTO,
                 token: Optional[CancellationToken] = None,
                 catalog: Optional[TargetCatalog] = None,
                 stream: Optional[TextIO] = None):
        self.config = config
        self.method = TracerouteMethod(method)
        self.stream = stream
        self.resolver = resolver or GeoSourceResolver(token=config.token)
        self.executor = ProbeRunExecutor(engine)
        self.dispatcher = dispatcher or ResultRendererDispatcher(
            table_renderer=TablePrinter(stream),
            route_reporter=RouteReporter(stream),
            table_pause=config.table_pause,
            stream=stream,
        )
        self.builder = SessionConfigBuilder(
            geo_resolver=self.resolver,
            streaming_renderer=streaming_renderer or RealtimePrinter(stream),
        )
        self.catalog = catalog or TargetCatalog()
        self.token = token or CancellationToken()

        if channel_opener is _AUTO:
            channel_opener = partial(open_live_channel, config.token)
        if not self.resolver.requires_live_channel(config.preference.data_origin):
            channel_opener = None
        self.connection_manager = LiveConnectionManager(channel_opener, self.token)

        self.state = SessionState.IDLE
        self.history: List[SessionState] = [self.state]
        self.logger = get_logger(__name__)

    @property
    def needs_live_channel(self) -> bool:
        return self.connection_manager.required

    def _transition(self, state: SessionState) -> None:
        self.logger.log_state_transition(self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def run(self, selection: Optional[str]) -> SessionOutcome:
        """
        Run the selected groups.

        The live channel, if any, is released before this method returns.
        """
        if self.state == SessionState.IDLE:
            # Selection was read before the session was built
            self._transition(SessionState.MENU_PROMPT)
        try:
            if self.connection_manager.required:
                self._transition(SessionState.CONNECTION_OPEN)
            with self.connection_manager as channel:
                self.resolver.attach_channel(channel)
                self._transition(SessionState.RUNNING)
                sequencer = SessionSequencer(
                    config=self.config,
                    method=self.method,
                    builder=self.builder,
                    executor=self.executor,
                    dispatcher=self.dispatcher,
                    catalog=self.catalog,
                    checkpoint=self.connection_manager.checkpoint,
                )
                outcome = sequencer.run_selection(selection)
        except LiveConnectionError as e:
            outcome = SessionOutcome(SessionStatus.FAILED, 0, e)
        finally:
            self.resolver.attach_channel(None)

        if outcome.status == SessionStatus.COMPLETED:
            self._transition(SessionState.SESSION_COMPLETE)
        else:
            self._transition(SessionState.FATAL_ABORT)
        self.logger.debug("Session finished", status=outcome.status.value,
                          runs=outcome.runs_completed)
        return outcome
