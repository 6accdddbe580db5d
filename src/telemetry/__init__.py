"""Telemetry sink consumed by the continuity subsystem."""

from telemetry.sink import TelemetrySink, filter_payload

__all__ = ["TelemetrySink", "filter_payload"]
