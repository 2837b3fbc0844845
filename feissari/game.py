"""Game session state machine.

A session is CREATED by create_session(), stays ACTIVE while turns are
played, and ENDS exactly once when the time budget runs out or the balance
reaches zero. advance_turn() runs one turn:

  1. Load the session (NotFound) and refuse ended sessions (Gone).
  2. Time expired          -> end the game, no oracle call.
  3. Balance already <= 0  -> end the game with a final balance of 0.
  4. A null message is only an opening request: valid when the log is empty
     or the latest interaction resolved its encounter (else BadRequest).
  5. Ask the oracle for the current character's reply.
  6. Append the interaction; bump threat level on escalation; move to the
     ring successor when the encounter resolved.
  7. If the balance hit 0 this turn, score with the balance held going into
     the turn, deactivate, and record the leaderboard entry.

There are no locks. Overlapping calls for one session are tolerated: the
active flag only ever goes from true to false, leaderboard recording checks
before inserting, and interactions are independent appends.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from feissari.errors import BadRequest, GameError, Gone, InternalError, NotFound, ServiceUnavailable
from feissari.leaderboard import LeaderboardRecorder
from feissari.ledger import SessionLedger
from feissari.models import (
    Character,
    Interaction,
    LeaderboardEntry,
    OracleReply,
    Session,
    SessionCreated,
    TurnResult,
)
from feissari.oracle import Oracle
from feissari.registry import CharacterRegistry
from feissari.storage import Storage

logger = logging.getLogger(__name__)

TIME_UP_MESSAGE = "Time is up!"
OUT_OF_MONEY_MESSAGE = "You are out of money!"


class GameEngine:
    """Runs sessions against one store.

    Args:
        storage:          Document store for sessions, logs and scores.
        oracle:           Reply generator, or None when no LLM is configured
                          (turns then fail with ServiceUnavailable).
        initial_balance:  Starting balance of every session.
        session_duration: Time budget of every session.
    """

    def __init__(
        self,
        storage: Storage,
        oracle: Oracle | None = None,
        initial_balance: int = 100,
        session_duration: timedelta = timedelta(minutes=3),
    ) -> None:
        self.storage = storage
        self.oracle = oracle
        self.registry = CharacterRegistry(storage)
        self.ledger = SessionLedger(storage, initial_balance, session_duration)
        self.leaderboard = LeaderboardRecorder(storage)

    # ------------------------------------------------------------------
    # Session creation and lookup
    # ------------------------------------------------------------------

    def create_session(self, owner_id: Any) -> SessionCreated:
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise BadRequest("owner_id is required and must be a non-empty string")
        character = self.registry.pick_random()
        if character is None:
            raise ServiceUnavailable("No characters registered")
        session = self.storage.create_session(owner_id.strip(), character.id)
        logger.info("session created id=%s owner=%s character=%s", session.id, session.owner_id, character.id)
        return SessionCreated(
            session_id=session.id,
            created_at=session.created_at,
            starting_balance=self.ledger.initial_balance,
        )

    def _load(self, session_id: Any) -> Session:
        if not isinstance(session_id, str) or not session_id.strip():
            raise BadRequest("session id is required")
        session = self.storage.get_session(session_id)
        if session is None:
            raise NotFound(f"Game {session_id!r} not found")
        return session

    def get_session(self, session_id: str) -> dict[str, Any]:
        """Session snapshot with the derived live values."""
        session = self._load(session_id)
        try:
            character_name = self.registry.get_by_id(session.current_character_id).name
        except NotFound:
            character_name = ""
        return {
            **session.model_dump(mode="json"),
            "character_name": character_name,
            "balance": self.ledger.current_balance(session.id),
            "defeated_count": self.ledger.defeated_count(session.id),
            "remaining_seconds": self.ledger.remaining_seconds(session) if session.active else 0,
        }

    def get_interactions(self, session_id: str) -> list[Interaction]:
        session = self._load(session_id)
        return self.ledger.interactions(session.id)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def advance_turn(self, session_id: Any, message: Any) -> TurnResult:
        if message is not None and not isinstance(message, str):
            raise BadRequest("message must be a string or null")
        if isinstance(message, str) and not message.strip():
            raise BadRequest("message must not be blank")

        session = self._load(session_id)
        if not session.active:
            raise Gone("Game has already ended")

        if self.ledger.is_expired(session):
            final_balance = self.ledger.current_balance(session.id)
            return self._guarded(self._end_game, session, final_balance, TIME_UP_MESSAGE)

        balance = self.ledger.current_balance(session.id)
        if balance <= 0:
            return self._guarded(self._end_game, session, 0, OUT_OF_MONEY_MESSAGE)

        if message is None:
            last = self.ledger.last_interaction(session.id)
            if last is not None and not last.encounter_resolved:
                raise BadRequest("message is required in the middle of a conversation")

        try:
            character = self.registry.get_by_id(session.current_character_id)
        except NotFound as e:
            logger.error("session %s points at missing character %s", session.id, session.current_character_id)
            raise InternalError("Current character no longer exists") from e

        if self.oracle is None:
            raise ServiceUnavailable("LLM backend is not configured")

        try:
            history = self.ledger.history_for_character(session.id, character.id)
            reply = await self.oracle.converse(
                character, balance, history, message.strip() if message else None, session.threat_level,
            )
        except GameError:
            raise
        except Exception as e:
            logger.exception("oracle call failed for session %s", session.id)
            raise InternalError("Failed to process turn") from e
        return self._guarded(self._apply_reply, session, character, balance, message, reply)

    def _guarded(self, step, *args) -> TurnResult:
        try:
            return step(*args)
        except GameError:
            raise
        except Exception as e:
            logger.exception("turn failed for session %s", args[0].id)
            raise InternalError("Failed to process turn") from e

    def _apply_reply(
        self,
        session: Session,
        character: Character,
        balance_before: int,
        message: str | None,
        reply: OracleReply,
    ) -> TurnResult:
        assets = character.assets_for(reply.expression)
        self.ledger.append_interaction(session.id, Interaction(
            character_id=character.id,
            character_name=character.name,
            player_message=message.strip() if message else None,
            reply_message=reply.message,
            balance_before=balance_before,
            balance_after=reply.balance,
            expression_assets=assets,
            encounter_resolved=reply.encounter_resolved,
        ))

        fields: dict[str, Any] = {}
        threat_level = session.threat_level
        current = self.storage.get_session(session.id)
        if reply.escalate_threat and current is not None and current.active:
            threat_level = current.threat_level + 1
            fields["threat_level"] = threat_level

        if reply.encounter_resolved:
            successor = self.registry.successor(character.id)
            if successor is not None:
                fields["current_character_id"] = successor.id

        game_over = reply.balance <= 0
        defeated = self.ledger.defeated_count(session.id)
        score = None
        if game_over:
            # Credit the balance held going into the fatal turn, not the zero after it.
            score = defeated * balance_before
            fields["active"] = False

        if fields:
            self.storage.update_session(session.id, fields)
        if game_over:
            logger.info("game over session=%s reason=bankrupt score=%d", session.id, score)
            self.leaderboard.record_if_absent(session.id, session.owner_id, score, defeated, reply.balance)

        return TurnResult(
            reply_message=reply.message,
            balance=reply.balance,
            expression_assets=assets,
            encounter_resolved=reply.encounter_resolved,
            game_over=game_over,
            character_name=character.name,
            score=score,
            defeated_count=defeated,
            threat_level=threat_level,
            quick_actions=reply.quick_actions,
        )

    def _end_game(self, session: Session, final_balance: int, reply_message: str) -> TurnResult:
        """Deactivate the session and record its score. Safe to repeat."""
        self.storage.update_session(session.id, {"active": False})
        defeated = self.ledger.defeated_count(session.id)
        score = defeated * final_balance
        self.leaderboard.record_if_absent(session.id, session.owner_id, score, defeated, final_balance)
        logger.info("game over session=%s reason=%r score=%d", session.id, reply_message, score)
        try:
            character_name = self.registry.get_by_id(session.current_character_id).name
        except NotFound:
            character_name = ""
        return TurnResult(
            reply_message=reply_message,
            balance=final_balance,
            game_over=True,
            character_name=character_name,
            score=score,
            defeated_count=defeated,
            threat_level=session.threat_level,
        )

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def record_result(self, session_id: str) -> LeaderboardEntry:
        """Return the ended session's leaderboard entry, recording it if missing."""
        session = self._load(session_id)
        if session.active:
            raise BadRequest("Game is still active")
        existing = self.leaderboard.get_for_session(session.id)
        if existing is not None:
            return existing
        final_balance = self.ledger.current_balance(session.id)
        defeated = self.ledger.defeated_count(session.id)
        return self.leaderboard.record_if_absent(
            session.id, session.owner_id, defeated * final_balance, defeated, final_balance,
        )
