"""HTTP surface through which the market connector feeds events to the agent."""

from __future__ import annotations

from typing import Callable, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from travel_agent.controllers.dependencies import get_engine, get_timers, require_connector
from travel_agent.domain.auctions import AUCTION_COUNT, UnknownAuctionError
from travel_agent.domain.constraints import ClientValidationError
from travel_agent.domain.models import (
    AuctionCategory,
    AuctionStatus,
    BidAction,
    BidState,
    Client,
    EntertainmentType,
    Quote,
    RejectReason,
)
from travel_agent.repository.market_gateway import DEFAULT_GAME_LENGTH_SECONDS, UnknownBidError
from travel_agent.services.engine_service import AgentEngine, GameNotStartedError
from travel_agent.services.timer_service import GameTimers
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"], dependencies=[Depends(require_connector)])


class ClientPreferenceRequest(BaseModel):
    """One client's trip preferences as announced at game start."""

    client_id: int = Field(ge=0)
    arrival: int = Field(ge=1, le=4)
    departure: int = Field(ge=2, le=5)
    hotel_value: int = Field(ge=0)
    alligator_wrestling: int = Field(ge=0)
    amusement: int = Field(ge=0)
    museum: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_stay(self) -> "ClientPreferenceRequest":
        if self.arrival >= self.departure:
            raise ValueError("arrival must be before departure")
        return self

    def to_client(self) -> Client:
        return Client(
            client_id=self.client_id,
            arrival=self.arrival,
            departure=self.departure,
            hotel_value=self.hotel_value,
            entertainment_values={
                EntertainmentType.ALLIGATOR_WRESTLING: self.alligator_wrestling,
                EntertainmentType.AMUSEMENT: self.amusement,
                EntertainmentType.MUSEUM: self.museum,
            },
        )


class GameStartRequest(BaseModel):
    clients: list[ClientPreferenceRequest] = Field(min_length=1)
    owns: dict[int, int] = Field(default_factory=dict)
    game_length: float = Field(default=DEFAULT_GAME_LENGTH_SECONDS, gt=0.0)
    game_time: float = Field(default=0.0, ge=0.0)
    start_timers: bool = True


class QuoteRequest(BaseModel):
    auction: int = Field(ge=0, lt=AUCTION_COUNT)
    ask_price: float = Field(ge=0.0)
    bid_price: float = Field(default=0.0, ge=0.0)
    status: AuctionStatus = AuctionStatus.OPEN

    def to_quote(self) -> Quote:
        return Quote(
            auction=self.auction,
            ask_price=self.ask_price,
            bid_price=self.bid_price,
            status=self.status,
        )


class QuoteUpdateRequest(QuoteRequest):
    game_time: Optional[float] = Field(default=None, ge=0.0)


class CategoryQuotesRequest(BaseModel):
    category: AuctionCategory
    quotes: list[QuoteRequest] = Field(min_length=1)
    game_time: Optional[float] = Field(default=None, ge=0.0)


class BidUpdateRequest(BaseModel):
    bid_id: str = Field(min_length=1)
    state: BidState
    unfilled_quantity: Optional[int] = Field(default=None, ge=0)


class BidRejectedRequest(BaseModel):
    bid_id: str = Field(min_length=1)
    reason: RejectReason


class BidErrorRequest(BaseModel):
    bid_id: Optional[str] = None
    error: str = Field(min_length=1)


class TransactionRequest(BaseModel):
    auction: int = Field(ge=0, lt=AUCTION_COUNT)
    quantity: int
    price: float = Field(ge=0.0)


class BidActionResponse(BaseModel):
    kind: str
    bid_id: str
    auction: int
    quantity: int
    price: float
    replaces: Optional[str] = None


class ActionsResponse(BaseModel):
    actions: list[BidActionResponse]


class GameStopResponse(ActionsResponse):
    report: Optional[dict[str, object]] = None


def _actions(actions: list[BidAction], timers: GameTimers | None) -> ActionsResponse:
    if timers is not None:
        actions = timers.drain_actions() + actions
    return ActionsResponse(actions=[BidActionResponse(**action.to_dict()) for action in actions])


def _dispatch(call: Callable[[], list[BidAction]], failure: str) -> list[BidAction]:
    try:
        return call()
    except GameNotStartedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except (ClientValidationError, UnknownAuctionError, UnknownBidError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected event failure | event=%s", failure)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process {failure}",
        ) from exc


def _running(engine: AgentEngine, call: Callable[[], list[BidAction]]) -> Callable[[], list[BidAction]]:
    def run() -> list[BidAction]:
        engine.require_running()
        return call()

    return run


@router.post("/game/start", response_model=ActionsResponse, status_code=status.HTTP_200_OK)
async def start_game(
    payload: GameStartRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    """Reset state for a new game and run the start-up allocation passes."""
    if timers is not None:
        timers.stop()
    actions = _dispatch(
        lambda: engine.game_started(
            [client.to_client() for client in payload.clients],
            owns=payload.owns,
            game_length=payload.game_length,
            game_time=payload.game_time,
        ),
        "game start",
    )
    if timers is not None and payload.start_timers:
        timers.start()
    return _actions(actions, None)


@router.post("/game/stop", response_model=GameStopResponse, status_code=status.HTTP_200_OK)
async def stop_game(
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> GameStopResponse:
    if timers is not None:
        timers.stop()
    _dispatch(_running(engine, lambda: []), "game stop")
    report = engine.game_stopped()
    pending = _actions([], timers)
    return GameStopResponse(
        actions=pending.actions,
        report=report.summary() if report is not None else None,
    )


@router.post("/quotes", response_model=ActionsResponse)
async def quote_updated(
    payload: QuoteUpdateRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    def call() -> list[BidAction]:
        if payload.game_time is not None:
            engine.sync_clock(payload.game_time)
        return engine.quote_updated(payload.to_quote())

    return _actions(_dispatch(_running(engine, call), "quote update"), timers)


@router.post("/quotes/category", response_model=ActionsResponse)
async def category_quotes_updated(
    payload: CategoryQuotesRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    def call() -> list[BidAction]:
        if payload.game_time is not None:
            engine.sync_clock(payload.game_time)
        return engine.category_quotes_updated(
            payload.category, [quote.to_quote() for quote in payload.quotes]
        )

    return _actions(_dispatch(_running(engine, call), "category quote update"), timers)


@router.post("/bids/updated", response_model=ActionsResponse)
async def bid_updated(
    payload: BidUpdateRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    actions = _dispatch(
        _running(
            engine,
            lambda: engine.bid_updated(payload.bid_id, payload.state, payload.unfilled_quantity),
        ),
        "bid update",
    )
    return _actions(actions, timers)


@router.post("/bids/rejected", response_model=ActionsResponse)
async def bid_rejected(
    payload: BidRejectedRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    actions = _dispatch(
        _running(engine, lambda: engine.bid_rejected(payload.bid_id, payload.reason)),
        "bid rejection",
    )
    return _actions(actions, timers)


@router.post("/bids/error", response_model=ActionsResponse)
async def bid_error(
    payload: BidErrorRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    actions = _dispatch(
        _running(engine, lambda: engine.bid_error(payload.bid_id, payload.error)),
        "bid error",
    )
    return _actions(actions, timers)


@router.post("/transactions", response_model=ActionsResponse)
async def transaction(
    payload: TransactionRequest,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    actions = _dispatch(
        _running(
            engine,
            lambda: engine.transaction(payload.auction, payload.quantity, payload.price),
        ),
        "transaction",
    )
    return _actions(actions, timers)


@router.post("/auctions/{auction}/closed", response_model=ActionsResponse)
async def auction_closed(
    auction: int,
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    actions = _dispatch(_running(engine, lambda: engine.auction_closed(auction)), "auction closure")
    return _actions(actions, timers)


@router.post("/timers/{timer}", response_model=ActionsResponse)
async def timer_tick(
    timer: Literal["hotel", "entertainment"],
    engine: AgentEngine = Depends(get_engine),
    timers: GameTimers | None = Depends(get_timers),
) -> ActionsResponse:
    """Run one timer tick on demand, for connectors that drive time themselves."""
    tick = engine.hotel_timer_tick if timer == "hotel" else engine.entertainment_timer_tick
    return _actions(_dispatch(_running(engine, tick), f"{timer} timer tick"), timers)


@router.get("/state")
async def agent_state(engine: AgentEngine = Depends(get_engine)) -> dict[str, object]:
    return engine.snapshot()
