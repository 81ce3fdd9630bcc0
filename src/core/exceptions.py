"""
Structured Exception Hierarchy for fasttrace

This module provides the exception hierarchy used by the session runner,
with user-friendly error messages and suggestions for error resolution.

Key Features:
- Structured exceptions for configuration, network and probe errors
- User-friendly error messages without technical details
- Suggested actions for error resolution
- Debug information available only in verbose mode
- Consistent exit codes for the command line entry point
"""

import sys
import traceback
from typing import Optional, Dict, Any
from enum import IntEnum


class ErrorCode(IntEnum):
    """Standard exit codes for the application."""
    SUCCESS = 0
    INVALID_INPUT = 10
    CONFIGURATION_ERROR = 11
    NETWORK_ERROR = 12
    PERMISSION_ERROR = 13
    INTERNAL_ERROR = 15
    PROBE_ERROR = 16
    INTERRUPTED = 130


class TracerouteError(Exception):
    """
    Base exception class for all fasttrace errors.

    Provides structured error information with user-friendly messages
    and suggested actions for resolution.
    """

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize traceroute error with structured information.

        Args:
            message: User-friendly error message
            suggestion: Suggested action to resolve the error
            error_code: Exit code for the error
            details: Additional error details (shown only in verbose mode)
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def format_error(self, verbose_level: int = 0) -> str:
        """
        Format error message based on verbosity level.

        Args:
            verbose_level: 0=basic, 1=verbose, 2=debug, 3=full details

        Returns:
            Formatted error message
        """
        lines = [f"Error: {self.message}"]

        if self.suggestion:
            lines.append(f"Suggestion: {self.suggestion}")

        if verbose_level >= 1 and self.details:
            lines.append("\nDetails:")
            for key, value in self.details.items():
                lines.append(f"  {key}: {value}")

        if verbose_level >= 2 and self.cause:
            lines.append(f"\nCaused by: {type(self.cause).__name__}: {str(self.cause)}")

        if verbose_level >= 3:
            lines.append("\nStack trace:")
            if self.cause is not None and self.cause.__traceback__ is not None:
                lines.append(''.join(traceback.format_exception(
                    type(self.cause), self.cause, self.cause.__traceback__
                )))
            elif sys.exc_info()[2]:
                lines.append(''.join(traceback.format_tb(sys.exc_info()[2])))
            else:
                lines.append("(No active exception - stack trace not available)")

        return "\n".join(lines)


# Configuration Errors

class ConfigurationError(TracerouteError):
    """Raised when there are configuration-related issues."""

    def __init__(self, message: str, config_file: Optional[str] = None, **kwargs):
        suggestion = "Check your configuration file format and values."
        if config_file:
            suggestion += f" Configuration file: {config_file}"
            kwargs['details'] = kwargs.get('details', {})
            kwargs['details']['config_file'] = config_file
        kwargs.setdefault('error_code', ErrorCode.CONFIGURATION_ERROR)
        super().__init__(
            message=message,
            suggestion=suggestion,
            **kwargs
        )


class CatalogError(ConfigurationError):
    """Raised when a vantage point in the target catalog is malformed."""

    def __init__(self, location: str, carrier: str, ip_address: str, **kwargs):
        details = kwargs.get('details', {})
        details.update({
            "location": location,
            "carrier": carrier,
            "ip_address": ip_address
        })
        kwargs['details'] = details
        super().__init__(
            message=f"Catalog entry {location}/{carrier} has an invalid IP address: '{ip_address}'",
            **kwargs
        )
        self.error_code = ErrorCode.INTERNAL_ERROR
        self.suggestion = (
            "The built-in target catalog is broken. This is a packaging bug, "
            "please report it together with the catalog entry shown above."
        )


# Network Errors

class NetworkError(TracerouteError):
    """Base class for network-related errors."""

    def __init__(self, message: str, **kwargs):
        if 'error_code' not in kwargs:
            kwargs['error_code'] = ErrorCode.NETWORK_ERROR
        super().__init__(
            message=message,
            **kwargs
        )


class InvalidIPError(NetworkError):
    """Raised when an IP address format is invalid."""

    def __init__(self, ip_address: Optional[str], **kwargs):
        details = kwargs.get('details', {})
        details['provided_value'] = ip_address
        kwargs['details'] = details
        kwargs['error_code'] = ErrorCode.INVALID_INPUT
        super().__init__(
            message=f"Invalid IP address format: '{ip_address}'",
            **kwargs
        )
        # Override suggestion
        self.suggestion = (
            "Please provide a valid IPv4 or IPv6 address. Examples:\n"
            "  IPv4: 202.96.209.133, 10.0.0.1\n"
            "  IPv6: 2001:db8::1, fe80::1"
        )


class LiveConnectionError(NetworkError):
    """Raised when the live geolocation channel cannot be opened."""

    def __init__(self, endpoint: str, error: str, **kwargs):
        super().__init__(
            message=f"Failed to open live geolocation channel to {endpoint}",
            suggestion=(
                "The selected geolocation source needs a persistent connection. "
                "Please check:\n"
                "  1. Network connectivity to the geolocation service\n"
                "  2. Your API token in the configuration file\n"
                "  3. Or switch 'data_origin' to another source (e.g. IPInfo, disable-geoip)"
            ),
            details={"endpoint": endpoint, "error": error},
            **kwargs
        )


# Execution Errors

class ExecutionError(TracerouteError):
    """Base class for execution-related errors."""
    pass


class ProbeExecutionError(ExecutionError):
    """Raised when a probe run against a destination fails."""

    def __init__(self, destination: str, reason: str, **kwargs):
        details = kwargs.pop('details', {})
        details.update({"destination": destination, "reason": reason})
        super().__init__(
            message=f"Traceroute to {destination} failed: {reason}",
            suggestion=(
                "The probe engine could not complete the run. Check:\n"
                "  1. The traceroute tool is installed (e.g. apt install traceroute)\n"
                "  2. You have the privileges needed for ICMP/TCP probes (try sudo)\n"
                "  3. Network connectivity from this host"
            ),
            error_code=ErrorCode.PROBE_ERROR,
            details=details,
            **kwargs
        )


class CommandExecutionError(ExecutionError):
    """Raised when a command execution fails."""

    def __init__(self, command: str, exit_code: int, error_output: str = "", **kwargs):
        super().__init__(
            message=f"Command execution failed with exit code {exit_code}",
            suggestion=(
                "The command failed to execute properly. Check:\n"
                "  1. Required tools are installed (traceroute, getent)\n"
                "  2. Sufficient permissions to run the command\n"
                "  3. Command syntax is correct"
            ),
            error_code=ErrorCode.PROBE_ERROR,
            details={
                "command": command,
                "exit_code": exit_code,
                "error_output": error_output
            },
            **kwargs
        )


# Error Handler Utility

class ErrorHandler:
    """Utility class for consistent error handling across the application."""

    @staticmethod
    def handle_error(error: Exception, verbose_level: int = 0) -> int:
        """
        Handle an error and return appropriate exit code.

        Args:
            error: The exception to handle
            verbose_level: Verbosity level (0-3)

        Returns:
            Exit code for the application
        """
        if isinstance(error, TracerouteError):
            print(error.format_error(verbose_level), file=sys.stderr)
            return error.error_code
        else:
            # Handle unexpected errors
            print("Error: An unexpected error occurred", file=sys.stderr)
            print("Suggestion: This might be a bug. Please report it with the full error output.", file=sys.stderr)

            if verbose_level >= 1:
                print(f"\nError type: {type(error).__name__}", file=sys.stderr)
                print(f"Error message: {str(error)}", file=sys.stderr)

            if verbose_level >= 3:
                print("\nStack trace:", file=sys.stderr)
                traceback.print_exception(type(error), error, error.__traceback__, file=sys.stderr)

            return ErrorCode.INTERNAL_ERROR

    @staticmethod
    def wrap_main(main_func):
        """
        Decorator to wrap main functions with error handling.

        Usage:
            @ErrorHandler.wrap_main
            def main(argv=None, verbose_level=0):
                ...
        """
        def wrapper(*args, **kwargs):
            try:
                return main_func(*args, **kwargs)
            except KeyboardInterrupt:
                print("\nOperation cancelled by user", file=sys.stderr)
                return ErrorCode.INTERRUPTED
            except Exception as e:
                verbose_level = 0
                if args and hasattr(args[0], 'verbose_level'):
                    verbose_level = args[0].verbose_level
                elif 'verbose_level' in kwargs:
                    verbose_level = kwargs['verbose_level']

                return ErrorHandler.handle_error(e, verbose_level)

        wrapper.__name__ = main_func.__name__
        wrapper.__doc__ = main_func.__doc__
        return wrapper
