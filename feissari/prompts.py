"""Handlebars prompt rendering for character replies."""

from collections.abc import Callable
from typing import Any

import pybars

from feissari.models import Character, Interaction


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


CHARACTER_REPLY_PROMPT = """\
You are playing the role of a face-to-face salesperson (feissari) named \
{{char.name}}. Always respond in English, in no more than 2-3 sentences.

{{{char.instructions}}}

IMPORTANT: You can sell products or services to the customer, which deducts \
money from their balance.
Current customer balance: {{balance}}€
Current threat level: {{threat_level}} (how much the customer has provoked \
salespeople so far; be more aggressive the higher it is)

Available expressions and when to use them:
{{#each char.expressions}}
- {{identifier}}: {{{description}}}
{{/each}}

You must respond in valid JSON format:
{
  "message": "your response to the customer",
  "balance": number (current balance minus any purchase, or unchanged),
  "expression": "identifier" (must be one of the available expressions),
  "encounter_resolved": boolean (true if the conversation ends - either a sale was made or you give up),
  "quick_actions": ["reply 1", "reply 2", "reply 3"] (exactly three short replies the customer could say next),
  "escalate_threat": boolean (true if the customer was rude or provocative and things should escalate)
}

RULES:
1. Respond ONLY with valid JSON, no additional text
2. The "expression" field must exactly match one of: {{char.expression_list}}
3. Only deduct from the balance if you convince the customer to make a purchase
4. Set "encounter_resolved" to true when the conversation should end (sale made or you give up). If you deduct from the balance, the encounter is resolved.
5. Never increase the balance
6. Keep your message conversational and in character
{{#if history}}

Previous conversation with this customer:
{{#each history}}
{{#if player_message}}
Customer: {{{player_message}}}
{{/if}}
You: {{{reply_message}}}

{{/each}}
{{/if}}

{{#if opening}}
This is the first interaction. Start the conversation as your character \
would approach someone on the street.
{{else}}
Customer's latest message: "{{{message}}}"
{{/if}}

Respond with JSON only:"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(
    character: Character,
    balance: int,
    history: list[Interaction],
    message: str | None,
    threat_level: int = 0,
) -> dict[str, Any]:
    """Assemble template variables for one character reply.

    Numbers are pre-formatted as strings so zero renders as "0".
    """
    return {
        "char": {
            "name": character.name,
            "instructions": character.instructions,
            "expressions": [
                {"identifier": e.identifier, "description": e.description}
                for e in character.expressions
            ],
            "expression_list": ", ".join(character.expression_ids()) or "neutral",
        },
        "balance": str(balance),
        "threat_level": str(threat_level),
        "history": [
            {
                "player_message": i.player_message or "",
                "reply_message": i.reply_message,
            }
            for i in history
        ],
        "opening": message is None,
        "message": message or "",
    }
