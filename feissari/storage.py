"""JSON file document store.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM: reads and writes go through plain helper
methods that load and dump JSON. Every write goes to a temporary file that is
renamed over the target, so a reader never sees a half-written document.

Directory layout:

    {base}/
      characters.json           <- character catalog (list of Character)
      users.json                <- owner_id -> Player
      leaderboard.json          <- list of LeaderboardEntry
      sessions/
        {id}.json               <- Session document
        {id}/
          interactions.json     <- append-only Interaction log

Each method does its read-modify-write without awaiting, so inside one
asyncio process a single call is atomic with respect to other requests.
Nothing here spans more than one document.
"""

from __future__ import annotations

import json
import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal

from feissari.models import Character, Interaction, LeaderboardEntry, Player, Session

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

_SESSION_FIELDS = {"current_character_id", "active", "threat_level"}

LeaderboardOrder = Literal["score", "created_at"]


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._sessions_root = base_path / "sessions"
        self._sessions_root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _session_file(self, session_id: str) -> Path | None:
        if not _ID_RE.match(session_id):
            return None
        return self._sessions_root / f"{session_id}.json"

    def _interactions_file(self, session_id: str) -> Path:
        return self._sessions_root / session_id / "interactions.json"

    def _read_json(self, path: Path, default: Any = None) -> Any:
        if not path.is_file():
            return default
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        tmp.write_text(json.dumps(data, indent=2))
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    def get_characters(self) -> list[Character]:
        raw = self._read_json(self._base / "characters.json", [])
        return [Character.model_validate(c) for c in raw]

    def save_characters(self, characters: list[Character]) -> None:
        self._write_json(
            self._base / "characters.json",
            [c.model_dump(mode="json") for c in characters],
        )

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def get_player(self, owner_id: str) -> Player | None:
        users = self._read_json(self._base / "users.json", {})
        raw = users.get(owner_id)
        return Player.model_validate(raw) if raw else None

    def save_player(self, player: Player) -> None:
        """Upsert a player by owner id."""
        path = self._base / "users.json"
        users = self._read_json(path, {})
        users[player.owner_id] = player.model_dump(mode="json")
        self._write_json(path, users)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, owner_id: str, character_id: str) -> Session:
        session = Session(
            id=new_id(),
            owner_id=owner_id,
            created_at=utcnow(),
            current_character_id=character_id,
        )
        self.save_session(session)
        return session

    def get_session(self, session_id: str) -> Session | None:
        path = self._session_file(session_id)
        if path is None or not path.is_file():
            return None
        return Session.model_validate_json(path.read_text())

    def save_session(self, session: Session) -> None:
        """Write the whole session document."""
        path = self._session_file(session.id)
        if path is None:
            raise ValueError(f"Invalid session id {session.id!r}")
        self._write_json(path, session.model_dump(mode="json"))

    def update_session(self, session_id: str, fields: dict[str, Any]) -> Session | None:
        """Update mutable session fields. Returns the updated session.

        Reads the stored document fresh so concurrent updates to other fields
        are not lost. Once `active` is stored as false it stays false.
        """
        session = self.get_session(session_id)
        if session is None:
            return None
        data = session.model_dump()
        for key, value in fields.items():
            if key in _SESSION_FIELDS:
                data[key] = value
        if not session.active:
            data["active"] = False
        updated = Session.model_validate(data)
        self.save_session(updated)
        return updated

    # ------------------------------------------------------------------
    # Interactions (append-only)
    # ------------------------------------------------------------------

    def get_interactions(self, session_id: str) -> list[Interaction]:
        """Return a session's interactions in ascending sequence_time order."""
        raw = self._read_json(self._interactions_file(session_id), [])
        interactions = [Interaction.model_validate(i) for i in raw]
        interactions.sort(key=lambda i: i.sequence_time)
        return interactions

    def append_interaction(self, session_id: str, interaction: Interaction) -> Interaction:
        """Append one interaction, assigning its id and sequence_time."""
        existing = self.get_interactions(session_id)
        seq_time = utcnow()
        if existing and existing[-1].sequence_time >= seq_time:
            seq_time = existing[-1].sequence_time + timedelta(microseconds=1)
        stored = interaction.model_copy(update={"id": new_id(), "sequence_time": seq_time})
        existing.append(stored)
        self._write_json(
            self._interactions_file(session_id),
            [i.model_dump(mode="json") for i in existing],
        )
        return stored

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def _leaderboard(self) -> list[LeaderboardEntry]:
        raw = self._read_json(self._base / "leaderboard.json", [])
        return [LeaderboardEntry.model_validate(e) for e in raw]

    def query_leaderboard(
        self,
        *,
        session_id: str | None = None,
        owner_id: str | None = None,
        order_by: LeaderboardOrder = "score",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[LeaderboardEntry]:
        entries = self._leaderboard()
        if session_id is not None:
            entries = [e for e in entries if e.session_id == session_id]
        if owner_id is not None:
            entries = [e for e in entries if e.owner_id == owner_id]
        if descending:
            # Ties keep the most recently inserted entry first.
            entries.reverse()
        entries.sort(key=lambda e: getattr(e, order_by), reverse=descending)
        if limit is not None:
            entries = entries[:limit]
        return entries

    def count_leaderboard(self, *, score_above: int | None = None) -> int:
        entries = self._leaderboard()
        if score_above is None:
            return len(entries)
        return sum(1 for e in entries if e.score > score_above)

    def insert_leaderboard_entry(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        path = self._base / "leaderboard.json"
        raw = self._read_json(path, [])
        stored = entry.model_copy(update={"id": new_id()})
        raw.append(stored.model_dump(mode="json"))
        self._write_json(path, raw)
        return stored
