from __future__ import annotations

import threading
from dataclasses import replace

from travel_agent.domain.models import Bid, BidAction, BidActionKind
from travel_agent.repository.market_gateway import MarketMirror
from travel_agent.services.engine_service import AgentEngine
from travel_agent.services.timer_service import GameTimers
from travel_agent.utils.config import get_settings


def _build_test_settings():
    return replace(
        get_settings(),
        hotel_timer_period_seconds=0.01,
        entertainment_timer_period_seconds=0.01,
    )


class _CountingEngine(AgentEngine):
    def __init__(self, settings) -> None:
        super().__init__(market=MarketMirror(clock=lambda: 0.0), settings=settings)
        self.ticked = threading.Event()

    def entertainment_timer_tick(self) -> list[BidAction]:
        self.ticked.set()
        return [BidAction(BidActionKind.SUBMIT, "tick", Bid(auction=16, quantity=1, price=10.0))]


def test_timers_run_ticks_and_buffer_actions():
    settings = _build_test_settings()
    engine = _CountingEngine(settings)
    timers = GameTimers(engine, settings=settings)

    timers.start()
    try:
        assert engine.ticked.wait(timeout=2.0)
        assert timers.running is True
    finally:
        timers.stop()

    actions = timers.drain_actions()
    assert actions
    assert all(action.bid_id == "tick" for action in actions)
    assert timers.drain_actions() == []
    assert timers.running is False


def test_ticks_without_running_game_produce_nothing():
    settings = _build_test_settings()
    engine = AgentEngine(market=MarketMirror(clock=lambda: 0.0), settings=settings)

    assert engine.hotel_timer_tick() == []
    assert engine.entertainment_timer_tick() == []
