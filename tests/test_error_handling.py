#!/usr/bin/env -S python3 -B -u
"""
Comprehensive Test Suite for Error Handling

This module tests all error conditions and verifies that:
1. Errors are handled gracefully without stack traces (unless -vvv)
2. User-friendly messages are shown
3. Helpful suggestions are provided
4. Correct exit codes are returned
"""

import unittest
import sys
from io import StringIO

from fasttrace.core.exceptions import (
    TracerouteError, ConfigurationError, CatalogError, InvalidIPError,
    LiveConnectionError, ProbeExecutionError, CommandExecutionError,
    ErrorHandler, ErrorCode
)


class TestErrorMessages(unittest.TestCase):
    """Test error message formatting at different verbosity levels."""

    def test_basic_error_message(self):
        """Test basic error message without verbosity."""
        error = ProbeExecutionError("202.96.209.133", "traceroute not found")

        message = error.format_error(verbose_level=0)

        # Should contain user-friendly message
        self.assertIn("Error: Traceroute to 202.96.209.133 failed: traceroute not found", message)
        self.assertIn("Suggestion:", message)
        self.assertIn("apt install traceroute", message)

        # Should NOT contain technical details
        self.assertNotIn("Details:", message)
        self.assertNotIn("Stack trace:", message)

    def test_verbose_error_message(self):
        """Test error message with -v verbosity."""
        error = LiveConnectionError("wss://api.leo.moe/v2/ipGeoWs", "timed out")

        message = error.format_error(verbose_level=1)

        self.assertIn("Details:", message)
        self.assertIn("endpoint: wss://api.leo.moe/v2/ipGeoWs", message)
        self.assertIn("error: timed out", message)

    def test_debug_error_message(self):
        """Test error message with -vv verbosity."""
        cause = ValueError("Invalid format")
        error = InvalidIPError("999.999.999.999", cause=cause)

        message = error.format_error(verbose_level=2)

        self.assertIn("Caused by: ValueError", message)
        self.assertIn("Invalid format", message)

    def test_trace_error_message(self):
        """Test error message with -vvv verbosity."""
        try:
            raise ValueError("Test error")
        except ValueError as e:
            error = ConfigurationError("Config failed", cause=e)

        message = error.format_error(verbose_level=3)

        self.assertIn("Stack trace:", message)
        self.assertIn("raise ValueError", message)


class TestExceptionTypes(unittest.TestCase):
    """Test specific exception types and their properties."""

    def test_configuration_error(self):
        error = ConfigurationError("Bad value", config_file="/tmp/fasttrace.yaml")
        self.assertEqual(error.error_code, ErrorCode.CONFIGURATION_ERROR)
        self.assertIn("/tmp/fasttrace.yaml", error.suggestion)
        self.assertEqual(error.details['config_file'], "/tmp/fasttrace.yaml")

    def test_catalog_error(self):
        error = CatalogError("Shanghai", "CT163", "bogus")
        self.assertIsInstance(error, ConfigurationError)
        self.assertEqual(error.error_code, ErrorCode.INTERNAL_ERROR)
        self.assertIn("Shanghai/CT163", error.message)

    def test_invalid_ip_error(self):
        error = InvalidIPError("")
        self.assertEqual(error.error_code, ErrorCode.INVALID_INPUT)
        self.assertIn("IPv4:", error.suggestion)

    def test_live_connection_error(self):
        error = LiveConnectionError("wss://example", "refused")
        self.assertEqual(error.error_code, ErrorCode.NETWORK_ERROR)
        self.assertIn("data_origin", error.suggestion)

    def test_probe_errors(self):
        error = ProbeExecutionError("1.2.3.4", "boom", details={"command": "traceroute"})
        self.assertEqual(error.error_code, ErrorCode.PROBE_ERROR)
        self.assertEqual(error.details, {"command": "traceroute", "destination": "1.2.3.4", "reason": "boom"})

        command_error = CommandExecutionError("traceroute -I 1.2.3.4", 1, "denied")
        self.assertEqual(command_error.details['exit_code'], 1)
        self.assertIn("exit code 1", command_error.message)


class TestErrorHandler(unittest.TestCase):
    """Test the ErrorHandler utility class."""

    def test_handle_traceroute_error(self):
        """Test handling of TracerouteError."""
        error = InvalidIPError("bad-ip")

        old_stderr = sys.stderr
        sys.stderr = StringIO()

        try:
            exit_code = ErrorHandler.handle_error(error, verbose_level=0)
            output = sys.stderr.getvalue()

            self.assertEqual(exit_code, ErrorCode.INVALID_INPUT)
            self.assertIn("Invalid IP address format", output)
            self.assertNotIn("Stack trace:", output)

        finally:
            sys.stderr = old_stderr

    def test_handle_unexpected_error(self):
        """Test handling of unexpected errors."""
        error = RuntimeError("Unexpected failure")

        old_stderr = sys.stderr
        sys.stderr = StringIO()

        try:
            exit_code = ErrorHandler.handle_error(error, verbose_level=0)
            output = sys.stderr.getvalue()

            self.assertEqual(exit_code, ErrorCode.INTERNAL_ERROR)
            self.assertIn("An unexpected error occurred", output)
            self.assertNotIn("Unexpected failure", output)

            sys.stderr = StringIO()
            ErrorHandler.handle_error(error, verbose_level=1)
            self.assertIn("Error message: Unexpected failure", sys.stderr.getvalue())

        finally:
            sys.stderr = old_stderr

    def test_wrap_main(self):
        """Test wrap_main converts exceptions to exit codes."""

        class Args:
            verbose_level = 0

        @ErrorHandler.wrap_main
        def failing(args):
            raise ProbeExecutionError("1.2.3.4", "boom")

        @ErrorHandler.wrap_main
        def interrupted(args):
            raise KeyboardInterrupt

        old_stderr = sys.stderr
        sys.stderr = StringIO()
        try:
            self.assertEqual(failing(Args()), ErrorCode.PROBE_ERROR)
            self.assertEqual(interrupted(Args()), ErrorCode.INTERRUPTED)
            self.assertIn("Operation cancelled by user", sys.stderr.getvalue())
        finally:
            sys.stderr = old_stderr

    def test_base_error_defaults(self):
        error = TracerouteError("Something failed")
        self.assertEqual(error.error_code, ErrorCode.INTERNAL_ERROR)
        self.assertEqual(error.format_error(), "Error: Something failed")


if __name__ == '__main__':
    unittest.main()
