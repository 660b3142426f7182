"""Radar session orchestration."""

from radar.domain.radar.orchestrator import RadarOrchestrator

__all__ = ["RadarOrchestrator"]
