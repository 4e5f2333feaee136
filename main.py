import logging
import math
import os
import random
import secrets
import string
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from schemas import (
    CURRENT_SCHEMA_VERSION,
    CreatedEvent,
    CreateEventRequest,
    Event,
    EventView,
    JoinEventRequest,
    Player,
    SchemaError,
    TeamNames,
    WireModel,
)
from storage import (
    EventAlreadyExists,
    EventNotFound,
    StorageProvider,
    TransportError,
    UnsupportedOperation,
    initialize_storage,
    storage_config_from_env,
)

logger = logging.getLogger(__name__)

KEY_ALPHABET = string.ascii_letters + string.digits + "_-"
EVENT_KEY_LENGTH = 10
ADMIN_TOKEN_LENGTH = 20

router = APIRouter()


def _gen_key(length: int) -> str:
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


def get_event_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _load_event(storage: StorageProvider, event_key: str) -> Event:
    event = storage.get_event(event_key)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def _is_admin(event: Event, admin: Optional[str]) -> bool:
    if not admin:
        return False
    return secrets.compare_digest(event.admin_token.encode(), admin.encode())


def _require_admin(event: Event, admin: Optional[str]) -> None:
    if not _is_admin(event, admin):
        raise HTTPException(status_code=403, detail="Admin token required")


def _require_player(event: Event, player_name: str) -> Player:
    player = event.find_player(player_name)
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


def _view(event: Event, is_admin: bool = False) -> EventView:
    total_paid = sum(1 for p in event.players if p.has_paid)
    team1_name, team2_name = event.team_names
    return EventView(
        **event.model_dump(exclude={"admin_token"}),
        team1_name=team1_name,
        team2_name=team2_name,
        price_per_player=event.price_per_player,
        total_paid=total_paid,
        total_collected=total_paid * event.price_per_player,
        is_admin=is_admin,
    )


def _require_routable_name(name: str) -> None:
    # Player names are used as a single path segment.
    if "/" in name:
        raise HTTPException(status_code=400, detail="Names cannot contain '/'")


def _replace_player(event: Event, player_name: str, **changes) -> List[Player]:
    return [p.model_copy(update=changes) if p.name == player_name else p for p in event.players]


# ---------------------------------------------------------------------------
# Health & Schema
# ---------------------------------------------------------------------------
@router.get("/")
def read_root():
    return {"message": "Five or Die Events Backend is running"}


@router.get("/schema")
def get_schema_overview():
    return {
        "models": ["Event", "Player", "TeamNames"],
        "version": CURRENT_SCHEMA_VERSION,
    }


# ---------------------------------------------------------------------------
# Event APIs
# ---------------------------------------------------------------------------
@router.post("/api/events", response_model=CreatedEvent, status_code=201)
def create_event(payload: CreateEventRequest, storage: StorageProvider = Depends(get_event_storage)):
    event_key = _gen_key(EVENT_KEY_LENGTH)
    admin_token = _gen_key(ADMIN_TOKEN_LENGTH)

    creator_name = payload.creator.strip()
    if not creator_name:
        raise HTTPException(status_code=400, detail="Creator name is required")
    _require_routable_name(creator_name)
    creator = Player(name=creator_name, has_paid=False, team=None)

    event = Event(
        event_key=event_key,
        admin_token=admin_token,
        name=payload.name,
        date=payload.date,
        location=payload.location,
        max_players=payload.max_players,
        price_total=payload.price_total,
        creator=creator_name,
        players=[creator],
    )

    storage.create_event(event)
    logger.info("Created event %s", event_key)
    return CreatedEvent(
        event=_view(event, is_admin=True),
        admin_token=admin_token,
        admin_path=f"/event/{event_key}?admin={admin_token}",
    )


@router.get("/api/events", response_model=List[EventView])
def list_events(storage: StorageProvider = Depends(get_event_storage)):
    return [_view(e) for e in storage.list_events()]


@router.get("/api/events/{event_key}", response_model=EventView)
def get_event(
    event_key: str,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    return _view(event, is_admin=_is_admin(event, admin))


class UpdateEventRequest(WireModel):
    name: Optional[str] = Field(None, min_length=1)
    date: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    max_players: Optional[int] = Field(None, gt=0)
    price_total: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


@router.patch("/api/events/{event_key}", response_model=EventView)
def update_event(
    event_key: str,
    payload: UpdateEventRequest,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)

    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if data.get("max_players", event.max_players) < len(event.players):
        raise HTTPException(status_code=400, detail="Max players is below the number of joined players")

    updated = event.model_copy(update=data)
    storage.update_event(updated)
    return _view(updated, is_admin=True)


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------
@router.post("/api/events/{event_key}/players", response_model=EventView)
def join_event(
    event_key: str,
    payload: JoinEventRequest,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)

    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Enter your name to join")
    _require_routable_name(name)
    if event.find_player(name) is not None:
        raise HTTPException(status_code=409, detail="Someone with this name has already joined")
    if len(event.players) >= event.max_players:
        raise HTTPException(status_code=400, detail="Event is full")

    player = Player(name=name, has_paid=False, team=None)
    updated = event.model_copy(update={"players": list(event.players) + [player]})
    storage.update_event(updated)
    return _view(updated, is_admin=_is_admin(event, admin))


@router.post("/api/events/{event_key}/players/{player_name}/payment", response_model=EventView)
def toggle_payment(
    event_key: str,
    player_name: str,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    player = _require_player(event, player_name)

    updated = event.model_copy(
        update={"players": _replace_player(event, player_name, has_paid=not player.has_paid)}
    )
    storage.update_event(updated)
    return _view(updated, is_admin=_is_admin(event, admin))


@router.delete("/api/events/{event_key}/players/{player_name}", response_model=EventView)
def remove_player(
    event_key: str,
    player_name: str,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)
    _require_player(event, player_name)

    updated = event.model_copy(update={"players": [p for p in event.players if p.name != player_name]})
    storage.update_event(updated)
    return _view(updated, is_admin=True)


class AssignTeamRequest(WireModel):
    team: Optional[Literal[1, 2]] = None


@router.put("/api/events/{event_key}/players/{player_name}/team", response_model=EventView)
def assign_team(
    event_key: str,
    player_name: str,
    payload: AssignTeamRequest,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)
    _require_player(event, player_name)

    updated = event.model_copy(update={"players": _replace_player(event, player_name, team=payload.team)})
    storage.update_event(updated)
    return _view(updated, is_admin=True)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------
@router.post("/api/events/{event_key}/teams/shuffle", response_model=EventView)
def shuffle_teams(
    event_key: str,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)
    if event.teams_locked:
        raise HTTPException(status_code=409, detail="Teams are locked")

    shuffled = [p.name for p in event.players]
    random.shuffle(shuffled)
    half = math.ceil(len(shuffled) / 2)
    assignment = {name: 1 if i < half else 2 for i, name in enumerate(shuffled)}

    players = [p.model_copy(update={"team": assignment[p.name]}) for p in event.players]
    updated = event.model_copy(update={"players": players})
    storage.update_event(updated)
    return _view(updated, is_admin=True)


@router.post("/api/events/{event_key}/teams/lock", response_model=EventView)
def toggle_teams_lock(
    event_key: str,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)

    updated = event.model_copy(update={"teams_locked": not event.teams_locked})
    storage.update_event(updated)
    return _view(updated, is_admin=True)


@router.put("/api/events/{event_key}/teams", response_model=EventView)
def save_team_names(
    event_key: str,
    payload: TeamNames,
    admin: Optional[str] = Query(None),
    storage: StorageProvider = Depends(get_event_storage),
):
    event = _load_event(storage, event_key)
    _require_admin(event, admin)

    updated = event.model_copy(update={"teams": payload})
    storage.update_event(updated)
    return _view(updated, is_admin=True)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(storage: StorageProvider) -> FastAPI:
    app = FastAPI(title="Five or Die Events API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EventNotFound, _error_handler(404))
    app.add_exception_handler(EventAlreadyExists, _error_handler(409))
    app.add_exception_handler(UnsupportedOperation, _error_handler(501))
    app.add_exception_handler(TransportError, _error_handler(502))
    app.add_exception_handler(SchemaError, _error_handler(422))

    app.state.storage = storage
    app.include_router(router)
    return app


app = create_app(initialize_storage(storage_config_from_env()))


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
