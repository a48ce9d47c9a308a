from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from broadcaster import Broadcaster
from log import get_logger, log_error, log_info
from snapshot import Snapshot, build_snapshot
from store import SnapshotStore

logger = get_logger("moonclock.scheduler")


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class SchedulerStartError(RuntimeError):
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Recalcula la instantánea al arrancar y luego cada ``interval_s`` segundos.

    Cada tick reemplaza el store y publica en el broadcaster. Un tick fallido
    se registra y se salta; el store conserva la instantánea anterior.
    """

    def __init__(
        self,
        store: SnapshotStore,
        broadcaster: Broadcaster,
        *,
        interval_s: float,
        build: Callable[[datetime], Snapshot] = build_snapshot,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._store = store
        self._broadcaster = broadcaster
        self._build = build
        self._clock = clock
        self.interval_s = interval_s
        self.state = SchedulerState.IDLE
        self.ticks = 0
        self.failed_ticks = 0
        self._task: Optional[asyncio.Task] = None

    def tick(self) -> Optional[Snapshot]:
        """Un ciclo de cálculo y publicación; devuelve la instantánea nueva o None si falla."""
        try:
            t = self._clock()
            snap = self._build(t)
        except Exception:
            self.failed_ticks += 1
            log_error(logger, "tick failed, keeping previous snapshot", exc_info=True, failed_ticks=self.failed_ticks)
            return None

        self._store.replace(snap)
        self._broadcaster.publish(snap)
        self.ticks += 1
        log_info(logger, "snapshot updated", last_updated=snap.last_updated, phase=snap.moon_phase_name, ticks=self.ticks)
        return snap

    def start(self) -> asyncio.Task:
        """Ejecuta el primer tick ya y arma la tarea periódica en el loop en curso."""
        if self.state is SchedulerState.RUNNING:
            raise SchedulerStartError("scheduler already running")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerStartError("no running event loop to arm the scheduler") from exc

        self.tick()
        try:
            self._task = loop.create_task(self._run(), name="moonclock-scheduler")
        except Exception as exc:
            raise SchedulerStartError(f"could not arm scheduler: {exc}") from exc
        self.state = SchedulerState.RUNNING
        log_info(logger, "scheduler running", interval_s=self.interval_s)
        return self._task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.tick()

    async def stop(self) -> None:
        """Cancela la tarea periódica (solo al apagar el proceso)."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log_info(logger, "scheduler stopped", ticks=self.ticks, failed_ticks=self.failed_ticks)
