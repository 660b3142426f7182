"""Location permission state tracking."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from radar.domain.location import errors
from radar.domain.location.models import PermissionState
from radar.domain.location.platform import GeolocationPlatform
from radar.domain.location.provider import LocationProvider
from radar.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

PermissionListener = Callable[[PermissionState], None]

_PLATFORM_STATES = {
    "granted": PermissionState.GRANTED,
    "denied": PermissionState.DENIED,
    "prompt": PermissionState.PENDING,
}


class PermissionStateMachine:
    """Tracks Pending/Granted/Denied for one session.

    Transitions happen only on explicit queries, request outcomes or
    platform change notifications. Access is never assumed.
    """

    def __init__(self, platform: GeolocationPlatform, provider: LocationProvider) -> None:
        self._platform = platform
        self._provider = provider
        self._state = PermissionState.PENDING
        self._listeners: List[PermissionListener] = []

    @property
    def state(self) -> PermissionState:
        return self._state

    def add_listener(self, listener: PermissionListener) -> None:
        self._listeners.append(listener)

    def _set(self, state: PermissionState) -> PermissionState:
        if state is self._state:
            return state
        logger.info("permission transition %s -> %s", self._state.value, state.value)
        self._state = state
        obs_metrics.inc_permission(state.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("permission listener failed")
        return state

    async def check(self) -> PermissionState:
        if not self._platform.is_supported():
            return self._state
        try:
            raw = await self._platform.query_permission()
        except Exception:
            logger.warning("permission query failed", exc_info=True)
            return self._state
        if raw is None:
            # No query API: only an acquisition can tell.
            return self._state
        return self._apply(raw)

    async def request_and_transition(self) -> PermissionState:
        """Trigger the platform prompt by attempting an acquisition and record what happened."""
        try:
            # Only a real platform answer says anything about access.
            await self._provider.get_current_fix(max_age_ms=0)
        except errors.LocationError as exc:
            return self.record_acquisition(exc)
        return self.record_acquisition(None)

    def record_acquisition(self, error: Optional[errors.LocationError]) -> PermissionState:
        if error is None:
            return self._set(PermissionState.GRANTED)
        if isinstance(error, errors.PermissionDenied):
            return self._set(PermissionState.DENIED)
        return self._state

    def observe_platform_change(self, raw_state: str) -> PermissionState:
        return self._apply(raw_state)

    def _apply(self, raw_state: str) -> PermissionState:
        target = _PLATFORM_STATES.get(raw_state)
        if target is None:
            logger.warning("unknown platform permission state=%s", raw_state)
            return self._state
        current = self._state
        if current is PermissionState.GRANTED and target is PermissionState.PENDING:
            # Granted only ends on an explicit revocation.
            return current
        return self._set(target)
