import json
from datetime import timedelta
from pathlib import Path

import pytest

from feissari.game import GameEngine
from feissari.models import Character, Expression
from feissari.oracle import Oracle
from feissari.storage import Storage


TEST_CHARACTERS = [
    Character(
        id="anna",
        name="Anna Antenni",
        instructions="You sell TV antennas.",
        expressions=[
            Expression(identifier="smile", description="Default", assets=["smile-1.svg", "smile-2.svg"]),
            Expression(identifier="sad", description="When giving up", assets=["sad-1.svg"]),
        ],
    ),
    Character(
        id="bertta",
        name="Bertta Banaani",
        instructions="You sell bananas.",
        expressions=[Expression(identifier="grin", description="Always", assets=["grin.svg"])],
    ),
    Character(
        id="cecilia",
        name="Cecilia Cola",
        instructions="You sell soda subscriptions.",
        expressions=[Expression(identifier="fizz", description="Always", assets=["fizz.svg"])],
    ),
]


def reply(
    message: str = "Buy my stuff!",
    balance: int = 100,
    expression: str = "smile",
    encounter_resolved: bool = False,
    quick_actions: list[str] | None = None,
    escalate_threat: bool = False,
) -> str:
    """A well-formed oracle reply as the LLM would send it."""
    return json.dumps({
        "message": message,
        "balance": balance,
        "expression": expression,
        "encounter_resolved": encounter_resolved,
        "quick_actions": quick_actions or ["No", "Maybe", "Yes"],
        "escalate_threat": escalate_threat,
    })


class StubLLM:
    """Scripted LLM: returns queued responses in order and records every call.

    A queued Exception is raised instead of returned. When the queue runs dry
    the stub keeps answering with a neutral, unresolved reply.
    """

    def __init__(self, responses: list | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[tuple[str, str]] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        if not self.responses:
            return reply()
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def prompts(self) -> list[str]:
        return [p for _, p in self.calls]


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def storage(data_dir) -> Storage:
    s = Storage(data_dir)
    s.save_characters(TEST_CHARACTERS)
    return s


@pytest.fixture
def stub_llm() -> StubLLM:
    return StubLLM()


@pytest.fixture
def engine(storage, stub_llm) -> GameEngine:
    return GameEngine(
        storage,
        Oracle(stub_llm, timeout=5),
        initial_balance=100,
        session_duration=timedelta(seconds=180),
    )
