"""
User Telemetry Service

Users API instrumented with OpenTelemetry tracing and metrics.
"""

__version__ = "1.0.0"
