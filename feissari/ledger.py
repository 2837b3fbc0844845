"""Session ledger: balance, history and defeat counts derived from the
append-only interaction log.

The interaction log is the only place a balance is ever written. The current
balance is the balance_after of the latest interaction, or the starting
balance when the log is empty.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from feissari.models import Interaction, Session
from feissari.storage import Storage


class SessionLedger:
    """Read model and write path over one store's interaction logs.

    Args:
        storage:          Document store holding sessions and interactions.
        initial_balance:  Balance every session starts with.
        session_duration: Time budget of one session.
    """

    def __init__(
        self,
        storage: Storage,
        initial_balance: int = 100,
        session_duration: timedelta = timedelta(minutes=3),
    ) -> None:
        self._storage = storage
        self.initial_balance = initial_balance
        self.session_duration = session_duration

    def interactions(self, session_id: str) -> list[Interaction]:
        return self._storage.get_interactions(session_id)

    def last_interaction(self, session_id: str) -> Interaction | None:
        log = self._storage.get_interactions(session_id)
        return log[-1] if log else None

    def current_balance(self, session_id: str) -> int:
        last = self.last_interaction(session_id)
        if last is None:
            return self.initial_balance
        return last.balance_after

    def history_for_character(self, session_id: str, character_id: str) -> list[Interaction]:
        """This character's interactions, oldest first."""
        return [
            i for i in self._storage.get_interactions(session_id)
            if i.character_id == character_id
        ]

    def append_interaction(self, session_id: str, record: Interaction) -> Interaction:
        """Persist one interaction. The store assigns id and sequence_time."""
        return self._storage.append_interaction(session_id, record)

    def defeated_count(self, session_id: str) -> int:
        """Distinct characters with at least one resolved encounter.

        Beating the same character again after the ring wraps does not count
        twice.
        """
        return len({
            i.character_id for i in self._storage.get_interactions(session_id)
            if i.encounter_resolved
        })

    def elapsed_since(self, session: Session, now: datetime | None = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - session.created_at

    def is_expired(self, session: Session, now: datetime | None = None) -> bool:
        return self.elapsed_since(session, now) >= self.session_duration

    def remaining_seconds(self, session: Session, now: datetime | None = None) -> int:
        remaining = self.session_duration - self.elapsed_since(session, now)
        return max(0, int(remaining.total_seconds()))
