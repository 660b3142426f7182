"""Prometheus metrics for the radar subsystem."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

LOCATION_READINGS = Counter(
	"radar_location_readings_total",
	"Raw location readings delivered by the platform",
	["source"],
)

LOCATION_FILTERED = Counter(
	"radar_location_filtered_total",
	"Watch readings run through the significance filter",
	["result"],
)

LOCATION_ERRORS = Counter(
	"radar_location_errors_total",
	"Location acquisition failures by kind",
	["kind"],
)

WATCH_SESSIONS_ACTIVE = Gauge(
	"radar_watch_sessions_active",
	"Platform watch handles currently held",
)

MATCH_PASSES = Counter(
	"radar_match_passes_total",
	"Nearby matching passes by outcome",
	["outcome"],
)

MATCH_LATENCY = Histogram(
	"radar_match_duration_seconds",
	"Nearby matching pass latency in seconds",
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

STALE_RESULTS_DROPPED = Counter(
	"radar_stale_results_dropped_total",
	"Match results discarded because a newer coordinate was accepted or tracking stopped",
)

PERSIST_FAILURES = Counter(
	"radar_persist_failures_total",
	"Failed writes of the user's own location bucket",
)

PERMISSION_TRANSITIONS = Counter(
	"radar_permission_transitions_total",
	"Permission state transitions",
	["state"],
)


def inc_reading(source: str) -> None:
	LOCATION_READINGS.labels(source=source).inc()


def inc_filtered(accepted: bool) -> None:
	LOCATION_FILTERED.labels(result="accepted" if accepted else "suppressed").inc()


def inc_location_error(kind: str) -> None:
	LOCATION_ERRORS.labels(kind=kind).inc()


def watch_started() -> None:
	WATCH_SESSIONS_ACTIVE.inc()


def watch_stopped() -> None:
	WATCH_SESSIONS_ACTIVE.dec()


def inc_match(outcome: str) -> None:
	MATCH_PASSES.labels(outcome=outcome).inc()


def observe_match(elapsed_seconds: float) -> None:
	MATCH_LATENCY.observe(elapsed_seconds)


def inc_stale_dropped() -> None:
	STALE_RESULTS_DROPPED.inc()


def inc_persist_failure() -> None:
	PERSIST_FAILURES.inc()


def inc_permission(state: str) -> None:
	PERMISSION_TRANSITIONS.labels(state=state).inc()
