"""Periodic hotel and entertainment ticks for a running game."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from travel_agent.domain.models import BidAction
from travel_agent.services.engine_service import AgentEngine
from travel_agent.utils.config import Settings, get_settings
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


class _PeriodicTick:
    def __init__(self, name: str, period: float, tick: Callable[[], list[BidAction]], sink) -> None:
        self.name = name
        self._period = period
        self._tick = tick
        self._sink = sink
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"{self.name}-timer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self._period, 1.0))

    def _run(self) -> None:
        while not self._stop.wait(self._period):
            try:
                self._sink(self._tick())
            except Exception:
                logger.exception("Timer tick failed | timer=%s", self.name)


class GameTimers:
    """Runs the hotel deadline watch and the entertainment cycle on daemon threads.

    Bid actions produced by ticks are buffered until the transport collects
    them with ``drain_actions``.
    """

    def __init__(self, engine: AgentEngine, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._pending: list[BidAction] = []
        self._timers = (
            _PeriodicTick(
                "hotel",
                self._settings.hotel_timer_period_seconds,
                engine.hotel_timer_tick,
                self._collect,
            ),
            _PeriodicTick(
                "entertainment",
                self._settings.entertainment_timer_period_seconds,
                engine.entertainment_timer_tick,
                self._collect,
            ),
        )

    @property
    def running(self) -> bool:
        return any(timer.running for timer in self._timers)

    def _collect(self, actions: list[BidAction]) -> None:
        if not actions:
            return
        with self._lock:
            self._pending.extend(actions)

    def drain_actions(self) -> list[BidAction]:
        with self._lock:
            actions, self._pending = self._pending, []
        return actions

    def start(self) -> None:
        with self._lock:
            self._pending.clear()
        for timer in self._timers:
            timer.start()
        logger.info("Game timers started")

    def stop(self) -> None:
        for timer in self._timers:
            timer.stop()
        logger.info("Game timers stopped")
