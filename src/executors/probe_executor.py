#!/usr/bin/env -S python3 -B -u
"""
Probe Run Executor

Runs one probe against one destination through a pluggable probe engine
and turns the engine's success or failure into a ProbeOutcome. The
executor does not retry: the session stops at the first failed outcome.
"""

from abc import ABC, abstractmethod

from fasttrace.core.exceptions import ProbeExecutionError, TracerouteError
from fasttrace.core.models import ProbeOutcome, ProbeResult, ProbeRunConfig, TracerouteMethod
from fasttrace.core.structured_logging import get_logger


class ProbeEngine(ABC):
    """Black-box traceroute engine."""

    @abstractmethod
    def run(self, method: TracerouteMethod, config: ProbeRunConfig) -> ProbeResult:
        """
        Trace the route to config.dest_ip.

        Implementations hand each hop to config.streaming_sink as soon as it
        is known, when a sink is set.

        Raises:
            TracerouteError: If the run cannot be completed
        """
        raise NotImplementedError


class ProbeRunExecutor:
    """Executes probe runs and reports them as ProbeOutcome values."""

    def __init__(self, engine: ProbeEngine):
        self.engine = engine
        self.logger = get_logger(__name__)

    def execute(self, method: TracerouteMethod, config: ProbeRunConfig) -> ProbeOutcome:
        with self.logger.timer(f"probe run to {config.dest_ip}"):
            try:
                result = self.engine.run(TracerouteMethod(method), config)
            except TracerouteError as e:
                self.logger.debug("Probe run failed", destination=config.dest_ip, error=e.message)
                return ProbeOutcome(error=e)
            except Exception as e:
                self.logger.debug("Probe engine raised unexpectedly", destination=config.dest_ip,
                                  error_type=type(e).__name__)
                return ProbeOutcome(error=ProbeExecutionError(config.dest_ip, str(e), cause=e))

        self.logger.debug("Probe run finished", destination=config.dest_ip,
                          hops=len(result.hops), reached=result.reached)
        return ProbeOutcome(result=result)
