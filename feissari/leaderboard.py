"""Leaderboard: one score record per ended session, plus read projections."""

from __future__ import annotations

import logging
from typing import Any

from feissari.errors import NotFound
from feissari.models import LeaderboardEntry
from feissari.storage import Storage, utcnow

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"

# Rough per-game LLM usage, for the "token churn" statistic.
TOKENS_PER_GAME = 25_000
EUR_PER_MILLION_TOKENS = 0.30


class LeaderboardRecorder:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def get_for_session(self, session_id: str) -> LeaderboardEntry | None:
        found = self._storage.query_leaderboard(session_id=session_id, limit=1)
        return found[0] if found else None

    def record_if_absent(
        self,
        session_id: str,
        owner_id: str,
        score: int,
        defeated_count: int,
        final_balance: int,
    ) -> LeaderboardEntry:
        """Insert the session's entry unless one exists; return the stored entry.

        Check-then-insert, not a transaction: two overlapping callers can both
        miss the check. The session is deactivated before recording, which
        keeps that window small.
        """
        existing = self.get_for_session(session_id)
        if existing is not None:
            return existing

        player = self._storage.get_player(owner_id)
        entry = LeaderboardEntry(
            owner_id=owner_id,
            owner_name=player.name if player else ANONYMOUS_NAME,
            session_id=session_id,
            score=score,
            defeated_count=defeated_count,
            final_balance=final_balance,
            created_at=utcnow(),
        )
        stored = self._storage.insert_leaderboard_entry(entry)
        logger.info(
            "leaderboard entry session=%s score=%d defeated=%d balance=%d",
            session_id, score, defeated_count, final_balance,
        )
        return stored

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def rank_of(self, entry: LeaderboardEntry) -> int:
        """1 + number of entries with a strictly higher score."""
        return self._storage.count_leaderboard(score_above=entry.score) + 1

    def top(self, limit: int = 10, owner_id: str | None = None) -> dict[str, Any]:
        entries = self._storage.query_leaderboard(order_by="score", limit=limit)
        result: dict[str, Any] = {
            "entries": [
                {**e.model_dump(mode="json"), "rank": self.rank_of(e)} for e in entries
            ],
            "current_user_entry": None,
            "current_user_rank": None,
        }
        if owner_id:
            best = self._storage.query_leaderboard(owner_id=owner_id, order_by="score", limit=1)
            if best:
                rank = self.rank_of(best[0])
                result["current_user_entry"] = {**best[0].model_dump(mode="json"), "rank": rank}
                result["current_user_rank"] = rank
        return result

    def recent(self, limit: int = 10, owner_id: str | None = None) -> dict[str, Any]:
        everything = self._storage.query_leaderboard(order_by="created_at")
        result: dict[str, Any] = {
            "entries": [e.model_dump(mode="json") for e in everything[:limit]],
            "current_user_entry": None,
            "current_user_position": None,
        }
        if owner_id:
            for position, e in enumerate(everything, start=1):
                if e.owner_id == owner_id:
                    result["current_user_entry"] = e.model_dump(mode="json")
                    result["current_user_position"] = position
                    break
        return result

    def stats(self) -> dict[str, Any]:
        total = self._storage.count_leaderboard()
        cost = total * TOKENS_PER_GAME * EUR_PER_MILLION_TOKENS / 1_000_000
        return {"total_games_played": total, "token_churn": f"€{cost:.2f}"}

    def last_game(self, owner_id: str) -> LeaderboardEntry:
        found = self._storage.query_leaderboard(owner_id=owner_id, order_by="created_at", limit=1)
        if not found:
            raise NotFound(f"No games found for {owner_id!r}")
        return found[0]
