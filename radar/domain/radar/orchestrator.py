"""Session-scoped coordination of permissions, location, persistence and matching.

Raw readings, watch failures and debounce expiries are all pushed onto one
queue and consumed by a single pump task, so the state below is only ever
touched from one logical stream. Matching queries run as separate tasks;
a finished query is published only if its coordinate is still the most
recently accepted one and tracking has not been restarted or stopped since.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple

from radar.domain.exceptions import MatchError, StoreError, Unauthenticated, WriteFailed
from radar.domain.location import errors
from radar.domain.location.models import Coordinate, PermissionState
from radar.domain.location.permissions import PermissionStateMachine
from radar.domain.location.platform import GeolocationPlatform
from radar.domain.location.provider import LocationProvider, WatchHandle
from radar.domain.location.significance import Debouncer, accept, debounce
from radar.domain.proximity.geo import bucket
from radar.domain.proximity.matcher import ProximityMatcher
from radar.domain.proximity.models import TrackedUser
from radar.domain.proximity.store import IdentityProvider, RecordStore
from radar.domain.radar.events import (
    EventHub,
    Listener,
    LocationFailed,
    NearbyUsersChanged,
    PermissionChanged,
    PersistFailed,
    Subscription,
)
from radar.obs import logging as obs_logging
from radar.obs import metrics as obs_metrics
from radar.settings import settings


@dataclass(frozen=True)
class _Reading:
    coordinate: Coordinate


@dataclass(frozen=True)
class _WatchFailed:
    error: errors.LocationError


@dataclass(frozen=True)
class _MatchDue:
    coordinate: Coordinate
    seq: int


class RadarOrchestrator:
    def __init__(
        self,
        provider: LocationProvider,
        matcher: ProximityMatcher,
        store: RecordStore,
        permissions: PermissionStateMachine,
        identity: Optional[IdentityProvider] = None,
        *,
        logger: Optional[logging.Logger] = None,
        threshold_km: Optional[float] = None,
        debounce_ms: Optional[int] = None,
        nearby_limit: Optional[int] = None,
    ) -> None:
        self._provider = provider
        self._matcher = matcher
        self._store = store
        self._permissions = permissions
        self._identity = identity
        self._log = logger or obs_logging.get_logger("radar.orchestrator")
        self._threshold_km = settings.significance_threshold_km if threshold_km is None else threshold_km
        self._debounce_ms = settings.debounce_ms if debounce_ms is None else debounce_ms
        self._limit = settings.nearby_limit if nearby_limit is None else nearby_limit

        self._hub = EventHub(self._log)
        self._permissions.add_listener(lambda state: self._hub.publish(PermissionChanged(state)))

        self._user_id: Optional[str] = None
        self._session_id = uuid.uuid4().hex
        self._start_lock = asyncio.Lock()
        self._watch: Optional[WatchHandle] = None
        self._queue: Optional[asyncio.Queue] = None
        self._pump: Optional[asyncio.Task] = None
        self._debouncer: Optional[Debouncer[Tuple[Coordinate, int]]] = None
        self._generation = 0
        self._seq = 0
        self._last_accepted: Optional[Coordinate] = None
        self._nearby: Tuple[TrackedUser, ...] = ()
        self._has_published = False
        self._match_tasks: Set[asyncio.Task] = set()
        self._closed = False

    @classmethod
    def for_platform(
        cls,
        platform: GeolocationPlatform,
        store: RecordStore,
        identity: Optional[IdentityProvider] = None,
        **kwargs,
    ) -> "RadarOrchestrator":
        provider = LocationProvider(platform)
        permissions = PermissionStateMachine(platform, provider)
        return cls(provider, ProximityMatcher(store), store, permissions, identity, **kwargs)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def permission_state(self) -> PermissionState:
        return self._permissions.state

    @property
    def nearby_users(self) -> List[TrackedUser]:
        return list(self._nearby)

    @property
    def last_accepted(self) -> Optional[Coordinate]:
        return self._last_accepted

    @property
    def is_tracking(self) -> bool:
        return self._watch is not None

    @property
    def session_id(self) -> str:
        return self._session_id

    def subscribe(self, listener: Listener) -> Subscription:
        return self._hub.subscribe(listener)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def initialize(self, user_id: Optional[str] = None) -> List[TrackedUser]:
        """Run the first matching pass and start tracking when access is already granted."""
        user_id = await self._resolve_user(user_id)
        with self._log_context():
            state = await self._permissions.check()
            last_known = await self._last_known_coordinate(user_id) if state is PermissionState.GRANTED else None

            if last_known is None:
                self._log.info("radar initialised without location state=%s", state.value)
                await self._run_fallback(self._seq, self._generation)
                return self.nearby_users

            await self._run_match(last_known, self._seq, self._generation, source="initial")
            try:
                await self.start_tracking(user_id)
            except errors.LocationError:
                # Already published as LocationFailed; the initial list stays on screen.
                pass
            return self.nearby_users

    async def start_tracking(self, user_id: Optional[str] = None) -> None:
        """Open a watch session. A session that is already running is left untouched."""
        if self._watch is not None:
            return
        self._ensure_open()
        async with self._start_lock:
            # A concurrent caller may have opened the session while this one waited.
            if self._watch is not None:
                return
            self._user_id = await self._resolve_user(user_id)
            with self._log_context():
                await self._open_session()

    async def _open_session(self) -> None:
        if self._permissions.state is PermissionState.DENIED:
            await self._permissions.check()
        if self._permissions.state is PermissionState.DENIED:
            error = errors.PermissionDenied()
            self._hub.publish(LocationFailed(error))
            raise error
        self._ensure_open()

        self._generation += 1
        generation = self._generation
        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        self._debouncer = debounce(lambda payload: self._on_debounced(queue, payload), self._debounce_ms)
        # The pump copies the bound log context; match tasks it spawns copy it from the pump.
        self._pump = asyncio.create_task(self._pump_events(queue, generation), name=f"radar-pump:{self._user_id}")
        try:
            self._watch = self._provider.watch(
                lambda coordinate: queue.put_nowait(_Reading(coordinate)),
                lambda error: queue.put_nowait(_WatchFailed(error)),
            )
        except errors.LocationError as exc:
            pump = self._release_session()
            await self._cancel_pump(pump)
            self._hub.publish(LocationFailed(exc))
            raise
        self._log.info("radar tracking started", extra={"generation": generation})

    async def stop_tracking(self) -> None:
        """Release the watch session. Safe to call when nothing is running."""
        pump = self._release_session()
        await self._cancel_pump(pump)

    async def refresh_now(self) -> List[TrackedUser]:
        """Acquire a fresh fix and match against it immediately, bypassing the debounce."""
        self._ensure_open()
        self._user_id = await self._resolve_user(self._user_id)
        with self._log_context():
            # While denied, a cached fix must not stand in for the platform's answer.
            max_age_ms = 0 if self._permissions.state is PermissionState.DENIED else None
            try:
                fix = await self._provider.get_current_fix(max_age_ms=max_age_ms)
            except errors.LocationError as exc:
                self._permissions.record_acquisition(exc)
                self._hub.publish(LocationFailed(exc))
                if not self._has_published:
                    await self._run_fallback(self._seq, self._generation)
                raise
            if fix.from_platform:
                self._permissions.record_acquisition(None)

            seq = self._accept(fix.coordinate)
            await self._persist(fix.coordinate)
            await self._run_match(fix.coordinate, seq, self._generation, source="match")
            return self.nearby_users

    async def request_permission(self) -> PermissionState:
        return await self._permissions.request_and_transition()

    async def teardown(self) -> None:
        """Release every platform and task resource held by this instance."""
        if self._closed:
            return
        await self.stop_tracking()
        tasks = list(self._match_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._match_tasks.clear()
        self._hub.clear()
        self._closed = True

    async def __aenter__(self) -> "RadarOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    def _on_debounced(self, queue: asyncio.Queue, payload: Tuple[Coordinate, int]) -> None:
        coordinate, seq = payload
        queue.put_nowait(_MatchDue(coordinate, seq))

    async def _pump_events(self, queue: asyncio.Queue, generation: int) -> None:
        while True:
            event = await queue.get()
            if generation != self._generation:
                return
            try:
                if isinstance(event, _Reading):
                    await self._handle_reading(event.coordinate, generation)
                elif isinstance(event, _MatchDue):
                    self._handle_match_due(event, generation)
                elif isinstance(event, _WatchFailed):
                    await self._handle_watch_failure(event.error)
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("radar event handling failed event=%s", type(event).__name__)
            if generation != self._generation:
                return

    async def _handle_reading(self, coordinate: Coordinate, generation: int) -> None:
        accepted = accept(self._last_accepted, coordinate, self._threshold_km)
        obs_metrics.inc_filtered(accepted)
        if not accepted:
            return
        if self._permissions.state is not PermissionState.GRANTED:
            self._permissions.record_acquisition(None)
        seq = self._accept(coordinate)
        await self._persist(coordinate)
        if generation != self._generation or self._debouncer is None:
            return
        self._debouncer((coordinate, seq))

    def _handle_match_due(self, event: _MatchDue, generation: int) -> None:
        if event.seq != self._seq:
            obs_metrics.inc_stale_dropped()
            return
        task = asyncio.create_task(self._run_match(event.coordinate, event.seq, generation, source="match"))
        self._match_tasks.add(task)
        task.add_done_callback(self._match_tasks.discard)

    async def _handle_watch_failure(self, error: errors.LocationError) -> None:
        self._permissions.record_acquisition(error)
        self._log.warning("radar watch failed kind=%s", error.kind.value)
        self._release_session()
        self._hub.publish(LocationFailed(error, tracking_stopped=True))
        if not self._has_published:
            await self._run_fallback(self._seq, self._generation)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _accept(self, coordinate: Coordinate) -> int:
        self._seq += 1
        self._last_accepted = coordinate
        return self._seq

    def _is_current(self, seq: int, generation: int) -> bool:
        return seq == self._seq and generation == self._generation and not self._closed

    async def _persist(self, coordinate: Coordinate) -> None:
        if not self._user_id:
            raise Unauthenticated()
        try:
            await self._store.update_user_location(self._user_id, bucket(coordinate))
        except StoreError as exc:
            error = WriteFailed(exc.reason)
            obs_metrics.inc_persist_failure()
            self._log.warning("radar location persist failed reason=%s", exc.reason)
            self._hub.publish(PersistFailed(error, coordinate))

    async def _run_match(self, coordinate: Coordinate, seq: int, generation: int, *, source: str) -> None:
        try:
            users = await self._matcher.find_nearby(self._user_id, coordinate, self._limit)
        except MatchError as exc:
            self._log.warning("radar match failed reason=%s", exc.reason)
            # Stale but present beats empty.
            if self._has_published or not self._is_current(seq, generation):
                return
            await self._run_fallback(seq, generation)
            return
        if not self._is_current(seq, generation):
            obs_metrics.inc_stale_dropped()
            self._log.debug("radar dropped stale match seq=%s latest=%s", seq, self._seq)
            return
        self._publish(users, coordinate, source)

    async def _run_fallback(self, seq: int, generation: int) -> None:
        try:
            users = await self._matcher.list_all(self._user_id)
        except MatchError as exc:
            self._log.warning("radar fallback failed reason=%s", exc.reason)
            return
        if not self._is_current(seq, generation):
            obs_metrics.inc_stale_dropped()
            return
        self._publish(users, None, "fallback")

    def _publish(self, users: List[TrackedUser], coordinate: Optional[Coordinate], source: str) -> None:
        self._nearby = tuple(users)
        self._has_published = True
        self._hub.publish(NearbyUsersChanged(users=self._nearby, coordinate=coordinate, source=source))

    async def _last_known_coordinate(self, user_id: str) -> Optional[Coordinate]:
        try:
            stored = await self._store.get_user_bucket(user_id)
        except StoreError as exc:
            self._log.warning("radar last known lookup failed reason=%s", exc.reason)
            return None
        return stored.to_coordinate() if stored is not None else None

    async def _resolve_user(self, user_id: Optional[str]) -> str:
        if user_id is None and self._identity is not None:
            user_id = await self._identity.get_current_user_id()
        if not user_id:
            raise Unauthenticated()
        self._user_id = user_id
        return user_id

    @contextmanager
    def _log_context(self) -> Iterator[None]:
        tokens = obs_logging.bind_context(user_id=self._user_id, session_id=self._session_id)
        try:
            yield
        finally:
            obs_logging.reset_context(tokens)

    def _release_session(self) -> Optional[asyncio.Task]:
        """Drop the watch, timer and queue synchronously and return the pump to cancel."""
        if self._debouncer is not None:
            self._debouncer.cancel()
            self._debouncer = None
        watch, self._watch = self._watch, None
        if watch is not None:
            self._provider.stop_watch(watch)
            self._generation += 1
            self._log.info("radar tracking stopped")
        self._queue = None
        pump, self._pump = self._pump, None
        return pump

    async def _cancel_pump(self, pump: Optional[asyncio.Task]) -> None:
        if pump is None or pump is asyncio.current_task():
            return
        pump.cancel()
        with suppress(asyncio.CancelledError):
            await pump

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("radar orchestrator has been torn down")
