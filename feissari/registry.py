"""Character registry: read-only view over the character catalog."""

from __future__ import annotations

import random

from feissari.errors import NotFound
from feissari.models import Character
from feissari.storage import Storage


class CharacterRegistry:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def list_all(self) -> list[Character]:
        """All characters, ordered by id."""
        return sorted(self._storage.get_characters(), key=lambda c: c.id)

    def get_by_id(self, character_id: str) -> Character:
        for character in self._storage.get_characters():
            if character.id == character_id:
                return character
        raise NotFound(f"Character {character_id!r} not found")

    def pick_random(self) -> Character | None:
        """Uniform random choice for a new session, or None if the catalog is empty."""
        characters = self.list_all()
        if not characters:
            return None
        return random.choice(characters)

    def successor(self, character_id: str) -> Character | None:
        """Next character by id order, wrapping from the last to the first.

        An id that is no longer registered is placed where it would sort, so
        play continues with the character after it.
        """
        characters = self.list_all()
        if not characters:
            return None
        for character in characters:
            if character.id > character_id:
                return character
        return characters[0]
