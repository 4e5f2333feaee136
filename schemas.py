"""
Event Schemas for Five or Die

Pydantic models below describe the single persisted entity (an Event with its
embedded Players) plus the request/response shapes used by the API.

Persisted records are versioned through the ``schemaVersion`` discriminator.
``validate_event`` dispatches on it and fails closed for anything it does not
know. Adding a version means a new model plus a new entry in
``EVENT_SCHEMAS``; existing versions are never edited.
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

CURRENT_SCHEMA_VERSION = "1"

DEFAULT_TEAM1_NAME = "Team 1"
DEFAULT_TEAM2_NAME = "Team 2"


class SchemaError(Exception):
    """Raised when data cannot be read as a known event schema."""

    def __init__(self, message: str, version: Any = None):
        super().__init__(message)
        self.version = version


class SchemaVersionError(SchemaError):
    def __init__(self, version: Any):
        super().__init__(f"Unknown schema version: {version}", version)


class EventValidationError(SchemaError):
    def __init__(self, version: Any, errors: ValidationError):
        super().__init__(f"Invalid event for schema version {version}: {errors}", version)
        self.errors = errors


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Version 1
# ---------------------------------------------------------------------------
class PlayerV1(WireModel):
    name: str = Field(..., min_length=1, strict=True, description="Display name, unique within the event")
    has_paid: bool = Field(..., strict=True)
    team: Optional[Literal[1, 2]] = Field(..., description="1, 2 or null when unassigned")


class TeamNamesV1(WireModel):
    team1_name: str = Field(DEFAULT_TEAM1_NAME, strict=True)
    team2_name: str = Field(DEFAULT_TEAM2_NAME, strict=True)


class EventV1(WireModel):
    schema_version: Literal["1"] = "1"
    event_key: str = Field(..., min_length=1, strict=True, description="Public identifier used in URLs")
    admin_token: str = Field(..., min_length=1, strict=True, description="Bearer secret for organizer access")
    name: str = Field(..., strict=True)
    date: str = Field(..., strict=True, description="Combined date and time, ISO-like")
    location: str = Field(..., strict=True)
    max_players: int = Field(..., gt=0, strict=True)
    price_total: float = Field(..., ge=0, allow_inf_nan=False, strict=True)
    creator: str = Field(..., strict=True)
    players: List[PlayerV1]
    teams: Optional[TeamNamesV1] = None
    teams_locked: bool = Field(False, strict=True, description="Prevents accidental reshuffling")

    @field_validator("players")
    @classmethod
    def _unique_player_names(cls, players: List[PlayerV1]) -> List[PlayerV1]:
        seen = set()
        for p in players:
            if p.name in seen:
                raise ValueError(f"duplicate player name: {p.name}")
            seen.add(p.name)
        return players

    @property
    def team_names(self) -> Tuple[str, str]:
        if self.teams is None:
            return DEFAULT_TEAM1_NAME, DEFAULT_TEAM2_NAME
        return self.teams.team1_name, self.teams.team2_name

    @property
    def price_per_player(self) -> float:
        return self.price_total / self.max_players

    def find_player(self, name: str) -> Optional[PlayerV1]:
        for p in self.players:
            if p.name == name:
                return p
        return None


# Current shapes used by the rest of the app
Event = EventV1
Player = PlayerV1
TeamNames = TeamNamesV1

EVENT_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "1": EventV1,
}


def validate_event(data: Any) -> Event:
    """Parse ``data`` into the event model named by its ``schemaVersion``.

    Raises ``SchemaVersionError`` if the discriminator is missing or unknown
    and ``EventValidationError`` if the payload does not match that version.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    version = data.get("schemaVersion") if isinstance(data, Mapping) else None

    if not isinstance(version, str) or version not in EVENT_SCHEMAS:
        raise SchemaVersionError(version)

    try:
        return EVENT_SCHEMAS[version].model_validate(data)
    except ValidationError as exc:
        raise EventValidationError(version, exc) from exc


def serialize_event(event: Event) -> Dict[str, Any]:
    """JSON-ready wire form. Absent team names are omitted rather than null."""
    data = event.model_dump(mode="json", by_alias=True)
    if event.teams is None:
        data.pop("teams")
    return data


# ---------------------------------------------------------------------------
# API shapes
# ---------------------------------------------------------------------------
class CreateEventRequest(WireModel):
    name: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    max_players: int = Field(10, gt=0)
    price_total: float = Field(..., ge=0, allow_inf_nan=False)
    creator: str = Field(..., min_length=1)


class JoinEventRequest(WireModel):
    name: str


class EventView(WireModel):
    """Event as shown to participants; never carries the admin token."""

    schema_version: str
    event_key: str
    name: str
    date: str
    location: str
    max_players: int
    price_total: float
    creator: str
    players: List[Player]
    teams: Optional[TeamNames] = None
    teams_locked: bool
    team1_name: str
    team2_name: str
    price_per_player: float
    total_paid: int
    total_collected: float
    is_admin: bool = False


class CreatedEvent(WireModel):
    event: EventView
    admin_token: str
    admin_path: str
