"""Core domain models.

The store, the ledger and the state machine all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class Expression(BaseModel):
    """A labelled emotional expression a character can show."""

    identifier: str
    description: str = ""  # usage guidance for the LLM
    assets: list[str] = Field(default_factory=list)


class Character(BaseModel):
    """A salesperson persona from the character catalog."""

    id: str
    name: str
    instructions: str
    expressions: list[Expression] = Field(default_factory=list)

    def expression_ids(self) -> list[str]:
        return [e.identifier for e in self.expressions]

    def assets_for(self, identifier: str) -> list[str]:
        for expression in self.expressions:
            if expression.identifier == identifier:
                return list(expression.assets)
        return []


class Session(BaseModel):
    """One game attempt. Balance is never stored here; see the ledger."""

    id: str
    owner_id: str
    created_at: datetime
    current_character_id: str
    active: bool = True
    threat_level: int = Field(default=0, ge=0)


class Interaction(BaseModel):
    """One request/reply exchange, appended to a session's log."""

    id: str = ""
    character_id: str
    character_name: str
    sequence_time: datetime | None = None  # assigned by the store on append
    player_message: str | None = None  # None only for an opening line
    reply_message: str = Field(min_length=1)
    balance_before: int = Field(ge=0)
    balance_after: int = Field(ge=0)
    expression_assets: list[str] = Field(default_factory=list)
    encounter_resolved: bool = False

    @model_validator(mode="after")
    def _money_never_increases(self) -> Interaction:
        if self.balance_after > self.balance_before:
            raise ValueError(
                f"balance_after ({self.balance_after}) exceeds "
                f"balance_before ({self.balance_before})"
            )
        return self


class Player(BaseModel):
    """Display name registered for an owner id."""

    owner_id: str
    name: str
    created_at: datetime


class LeaderboardEntry(BaseModel):
    """Final score of one ended session."""

    id: str = ""
    owner_id: str
    owner_name: str
    session_id: str
    score: int
    defeated_count: int
    final_balance: int
    created_at: datetime


class OracleReply(BaseModel):
    """A sanitized character reply, always safe to apply."""

    message: str
    balance: int
    expression: str
    encounter_resolved: bool
    quick_actions: list[str]
    escalate_threat: bool = False


class TurnResult(BaseModel):
    """Outcome of one advance_turn call."""

    reply_message: str
    balance: int
    expression_assets: list[str] = Field(default_factory=list)
    encounter_resolved: bool = False
    game_over: bool = False
    character_name: str
    score: int | None = None
    defeated_count: int = 0
    threat_level: int = 0
    quick_actions: list[str] = Field(default_factory=list)


class SessionCreated(BaseModel):
    session_id: str
    created_at: datetime
    starting_balance: int
