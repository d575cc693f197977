"""Telemetry helpers for leaderboard instrumentation."""

from .events import set_events_telemetry_emitter

__all__ = ["set_events_telemetry_emitter"]
