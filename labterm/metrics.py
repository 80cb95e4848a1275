"""Prometheus metrics exporter for LabTerm.

This module provides Prometheus-compatible metrics for monitoring how the
training terminal is used.

Metrics exposed:
- Commands executed (by command family and result)
- Command errors (by error kind)
- Points awarded
- Command duration
- Engine and SSH sessions
- Metasploit sessions opened
- CTF flag submissions
"""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Metric Definitions
# =============================================================================

# Command metrics
commands_total = Counter(
    "labterm_commands_total",
    "Total number of commands executed",
    ["family", "result"],  # result: success, failure
)

command_errors_total = Counter(
    "labterm_command_errors_total",
    "Failed commands grouped by error kind",
    ["kind"],
)

points_awarded_total = Counter(
    "labterm_points_awarded_total",
    "Total points awarded by the command engine",
)

command_duration = Histogram(
    "labterm_command_duration_seconds",
    "Command execution time in seconds",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# Session metrics
engine_sessions_active = Gauge(
    "labterm_engine_sessions_active",
    "Session states currently held by the engine",
)

msf_sessions_opened_total = Counter(
    "labterm_msf_sessions_opened_total",
    "Simulated Meterpreter sessions opened by exploits",
)

# CTF metrics
ctf_submissions_total = Counter(
    "labterm_ctf_submissions_total",
    "CTF flag submissions",
    ["result"],  # correct, incorrect
)

# SSH metrics
ssh_connections_total = Counter(
    "labterm_ssh_connections_total",
    "Total number of SSH connection attempts",
    ["result"],  # success, failed
)

ssh_sessions_active = Gauge(
    "labterm_ssh_sessions_active",
    "Currently active SSH sessions",
)

# System health metrics
system_info = Info(
    "labterm_system",
    "LabTerm system information",
)

uptime_seconds = Gauge(
    "labterm_uptime_seconds",
    "Server uptime in seconds",
)


# =============================================================================
# Metrics Collector Class
# =============================================================================


class MetricsCollector:
    """Centralized metrics collection and management."""

    def __init__(self):
        from . import __version__

        self._lock = Lock()
        self._start_time = time.time()
        self._engine_sessions = 0

        system_info.info({"version": __version__, "mode": "training"})

        logger.info("Prometheus metrics collector initialized")

    # -------------------------------------------------------------------------
    # Command Metrics
    # -------------------------------------------------------------------------

    def record_command(
        self,
        family: str,
        success: bool,
        points: int = 0,
        duration: Optional[float] = None,
        error_kind: Optional[str] = None,
    ):
        """Record one dispatched command.

        Args:
            family: Command family that handled it (linux, nmap, msf, ...)
            success: Whether the command succeeded
            points: Points awarded for it
            duration: Execution time in seconds (optional)
            error_kind: ErrorKind value for failures (optional)
        """
        commands_total.labels(family=family, result="success" if success else "failure").inc()
        if points > 0:
            points_awarded_total.inc(points)
        if duration is not None:
            command_duration.observe(duration)
        if error_kind:
            command_errors_total.labels(kind=error_kind).inc()

        logger.debug(f"Command recorded: family={family}, success={success}, points={points}")

    # -------------------------------------------------------------------------
    # Session Metrics
    # -------------------------------------------------------------------------

    def set_engine_sessions(self, count: int):
        """Set the number of session states held by the engine."""
        with self._lock:
            self._engine_sessions = count
            engine_sessions_active.set(count)

    def record_msf_session_opened(self):
        """Record a simulated Meterpreter session being opened."""
        msf_sessions_opened_total.inc()

    def record_ssh_connection(self, result: str):
        """Record an SSH connection attempt.

        Args:
            result: 'success' or 'failed'
        """
        ssh_connections_total.labels(result=result).inc()
        logger.debug(f"SSH connection recorded: {result}")

    def record_ssh_session_start(self):
        """Record the start of an SSH session."""
        ssh_sessions_active.inc()

    def record_ssh_session_end(self):
        """Record the end of an SSH session."""
        ssh_sessions_active.dec()

    # -------------------------------------------------------------------------
    # CTF Metrics
    # -------------------------------------------------------------------------

    def record_ctf_submission(self, correct: bool):
        """Record a CTF flag submission."""
        ctf_submissions_total.labels(result="correct" if correct else "incorrect").inc()

    # -------------------------------------------------------------------------
    # System Metrics
    # -------------------------------------------------------------------------

    def update_uptime(self):
        """Update the uptime metric."""
        uptime_seconds.set(time.time() - self._start_time)

    def get_metrics(self) -> bytes:
        """Generate Prometheus metrics in text format.

        Returns:
            Metrics in Prometheus exposition format
        """
        self.update_uptime()
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


# =============================================================================
# Global Metrics Instance
# =============================================================================

_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics_collector():
    """Reset the global metrics collector (for testing)."""
    global _metrics_collector
    _metrics_collector = None


# =============================================================================
# HTTP Server for Metrics Endpoint
# =============================================================================


def start_metrics_server(port: int = 9090, host: str = "0.0.0.0"):
    """Start HTTP server for the Prometheus metrics endpoint.

    Serves ``/metrics`` and a plain ``/health`` check from a daemon thread.

    Args:
        port: Port to listen on
        host: Host address to bind to
    """
    from http.server import HTTPServer, BaseHTTPRequestHandler
    from threading import Thread

    collector = get_metrics_collector()

    class MetricsHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            if self.path == "/metrics":
                self.send_response(200)
                self.send_header("Content-Type", collector.get_content_type())
                self.end_headers()
                self.wfile.write(collector.get_metrics())
            elif self.path == "/health":
                self.send_response(200)
                self.send_header("Content-Type", "text/plain")
                self.end_headers()
                self.wfile.write(b"OK\n")
            else:
                self.send_response(404)
                self.end_headers()
                self.wfile.write(b"Not Found\n")

        def log_message(self, format, *args):
            logger.debug("metrics endpoint: " + format, *args)

    server = HTTPServer((host, port), MetricsHandler)

    def serve():
        logger.info(f"Metrics server started on http://{host}:{port}/metrics")
        server.serve_forever()

    thread = Thread(target=serve, daemon=True, name="MetricsServer")
    thread.start()

    return server
