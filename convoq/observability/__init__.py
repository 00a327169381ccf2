"""Logging and in-process telemetry helpers."""

from __future__ import annotations
