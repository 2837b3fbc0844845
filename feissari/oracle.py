"""Conversation oracle: asks the LLM for a character's next line.

converse() always returns a usable OracleReply. Bad fields in the model's
output are corrected in place by sanitize_reply(); anything that leaves no
usable reply message (transport error, timeout, unparsable output) yields
fallback_reply(), which ends the encounter so the player is never stuck.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any

from feissari.llm import LLM
from feissari.models import Character, Interaction, OracleReply
from feissari.prompts import CHARACTER_REPLY_PROMPT, build_context, render_prompt

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Something went wrong"
FALLBACK_EXPRESSION = "neutral"
DEFAULT_QUICK_ACTIONS = ["No thanks.", "Tell me more.", "I have to go."]

# Older prompt revisions used these key names.
_KEY_ALIASES = {
    "emote": "expression",
    "goToNext": "encounter_resolved",
    "quickActions": "quick_actions",
    "escalateThreat": "escalate_threat",
}


def default_expression(character: Character) -> str:
    ids = character.expression_ids()
    return ids[0] if ids else FALLBACK_EXPRESSION


def fallback_reply(character: Character, current_balance: int) -> OracleReply:
    return OracleReply(
        message=FALLBACK_MESSAGE,
        balance=current_balance,
        expression=default_expression(character),
        encounter_resolved=True,
        quick_actions=list(DEFAULT_QUICK_ACTIONS),
        escalate_threat=False,
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned.strip()


def _loads(text: str) -> Any:
    # Deeply nested output overflows the decoder instead of failing to parse.
    try:
        return json.loads(text)
    except RecursionError as e:
        raise ValueError("JSON nested too deeply") from e


def parse_reply(text: str) -> dict[str, Any] | None:
    """Extract the JSON object from LLM output, tolerating noise around it."""
    cleaned = _strip_fences(text)
    try:
        data = _loads(cleaned)
    except ValueError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            logger.warning("Oracle output has no JSON object: %r", text[:200])
            return None
        try:
            data = _loads(cleaned[start:end + 1])
        except ValueError as e:
            logger.warning("Oracle output is not valid JSON: %s", e)
            return None
    if not isinstance(data, dict):
        logger.warning("Oracle output is %s, not an object", type(data).__name__)
        return None
    for alias, key in _KEY_ALIASES.items():
        if alias in data and key not in data:
            data[key] = data.pop(alias)
    return data


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------

def _sanitize_balance(value: Any, current_balance: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        logger.warning("Oracle balance %r is not a number, keeping %d", value, current_balance)
        return current_balance
    balance = int(value)
    if balance < 0:
        logger.warning("Oracle returned negative balance, setting to 0")
        balance = 0
    if balance > current_balance:
        logger.warning("Oracle tried to increase balance, keeping current balance")
        balance = current_balance
    return balance


def _sanitize_quick_actions(value: Any) -> list[str]:
    if (
        isinstance(value, list)
        and len(value) == 3
        and all(isinstance(a, str) and a.strip() for a in value)
    ):
        return [a.strip() for a in value]
    logger.warning("Oracle quick actions %r invalid, using defaults", value)
    return list(DEFAULT_QUICK_ACTIONS)


def sanitize_reply(raw: dict[str, Any], character: Character, current_balance: int) -> OracleReply:
    """Turn raw model output into a valid reply. Never raises."""
    message = raw.get("message")
    if not isinstance(message, str) or not message.strip():
        logger.warning("Oracle reply has no usable message, using fallback")
        return fallback_reply(character, current_balance)

    expression = raw.get("expression")
    if expression not in character.expression_ids():
        logger.warning("Invalid expression %r, using first available expression", expression)
        expression = default_expression(character)

    resolved = raw.get("encounter_resolved")
    if not isinstance(resolved, bool):
        resolved = False

    escalate = raw.get("escalate_threat")
    if not isinstance(escalate, bool):
        escalate = False

    return OracleReply(
        message=message.strip(),
        balance=_sanitize_balance(raw.get("balance"), current_balance),
        expression=expression,
        encounter_resolved=resolved,
        quick_actions=_sanitize_quick_actions(raw.get("quick_actions")),
        escalate_threat=escalate,
    )


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------

class Oracle:
    """Builds the character prompt, calls the LLM and sanitizes its reply.

    Args:
        llm:     Text-generation callable (see feissari.llm.LLM).
        timeout: Upper bound in seconds for one LLM call.
    """

    def __init__(self, llm: LLM, timeout: float = 30.0) -> None:
        self._llm = llm
        self._timeout = timeout

    def build_prompt(
        self,
        character: Character,
        current_balance: int,
        history: list[Interaction],
        message: str | None,
        threat_level: int = 0,
    ) -> str:
        ctx = build_context(character, current_balance, history, message, threat_level)
        return render_prompt(CHARACTER_REPLY_PROMPT, ctx)

    async def converse(
        self,
        character: Character,
        current_balance: int,
        history: list[Interaction],
        message: str | None,
        threat_level: int = 0,
    ) -> OracleReply:
        try:
            prompt = self.build_prompt(character, current_balance, history, message, threat_level)
            text = await asyncio.wait_for(
                self._llm("character_reply", prompt), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.error("Oracle call for %s timed out after %ss", character.id, self._timeout)
            return fallback_reply(character, current_balance)
        except Exception:
            logger.exception("Oracle call for %s failed", character.id)
            return fallback_reply(character, current_balance)

        try:
            raw = parse_reply(text) if isinstance(text, str) else None
            if raw is None:
                return fallback_reply(character, current_balance)
            return sanitize_reply(raw, character, current_balance)
        except Exception:
            logger.exception("Oracle reply for %s could not be read", character.id)
            return fallback_reply(character, current_balance)
