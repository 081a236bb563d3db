"""
Engine lifecycle events.

A closed set of kinds, one Pydantic model per kind, joined into a
discriminated union on the ``type`` field. Consumers match on the class (or on
``type`` after serialization); there is no open handler hierarchy.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class EngineType(str, Enum):
    """Engine that produced a session."""
    OPENAI = "openai"


class SessionStarted(BaseModel):
    type: Literal["session_started"] = "session_started"
    workspace_id: str
    session_id: str
    engine: EngineType = EngineType.OPENAI


class TurnStarted(BaseModel):
    type: Literal["turn_started"] = "turn_started"
    workspace_id: str
    turn_id: str


class TextDelta(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    workspace_id: str
    text: str


class TurnCompleted(BaseModel):
    type: Literal["turn_completed"] = "turn_completed"
    workspace_id: str
    result: Optional[dict[str, Any]] = None


class TurnError(BaseModel):
    type: Literal["turn_error"] = "turn_error"
    workspace_id: str
    error: str
    code: Optional[str] = None


EngineEvent = Annotated[
    Union[SessionStarted, TurnStarted, TextDelta, TurnCompleted, TurnError],
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (TurnCompleted, TurnError)


class TurnEvent(BaseModel):
    """An engine event tagged with the turn that emitted it."""
    turn_id: str
    event: EngineEvent

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.event, TERMINAL_EVENTS)
