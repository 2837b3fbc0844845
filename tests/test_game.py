"""Tests for the game state machine: sessions, turns, endings, scoring."""

from datetime import timedelta

import pytest

from conftest import StubLLM, reply
from feissari.errors import BadRequest, Gone, InternalError, NotFound, ServiceUnavailable
from feissari.game import OUT_OF_MONEY_MESSAGE, TIME_UP_MESSAGE, GameEngine
from feissari.llm import LLMError
from feissari.models import Interaction
from feissari.oracle import FALLBACK_MESSAGE
from feissari.storage import Storage


def _start(engine: GameEngine, character_id: str = "anna") -> str:
    """Create a session and pin its current character."""
    created = engine.create_session("owner-1")
    session = engine.storage.get_session(created.session_id)
    engine.storage.save_session(session.model_copy(update={"current_character_id": character_id}))
    return created.session_id


def _age(engine: GameEngine, session_id: str, by: timedelta) -> None:
    session = engine.storage.get_session(session_id)
    engine.storage.save_session(session.model_copy(update={"created_at": session.created_at - by}))


# ---------------------------------------------------------------------------
# Session creation and lookup
# ---------------------------------------------------------------------------

class TestCreateSession:
    def test_new_session_is_active_with_starting_balance(self, engine: GameEngine) -> None:
        created = engine.create_session("owner-1")
        assert created.starting_balance == 100
        session = engine.storage.get_session(created.session_id)
        assert session.active is True
        assert session.threat_level == 0
        assert session.current_character_id in {"anna", "bertta", "cecilia"}
        assert engine.ledger.current_balance(created.session_id) == 100

    @pytest.mark.parametrize("owner", [None, "", "   ", 42])
    def test_invalid_owner(self, engine: GameEngine, owner) -> None:
        with pytest.raises(BadRequest):
            engine.create_session(owner)

    def test_empty_catalog(self, tmp_path) -> None:
        with pytest.raises(ServiceUnavailable):
            GameEngine(Storage(tmp_path)).create_session("owner-1")

    def test_snapshot(self, engine: GameEngine) -> None:
        sid = _start(engine, "bertta")
        snap = engine.get_session(sid)
        assert snap["id"] == sid
        assert snap["character_name"] == "Bertta Banaani"
        assert snap["balance"] == 100
        assert snap["defeated_count"] == 0
        assert 0 < snap["remaining_seconds"] <= 180

    def test_snapshot_missing(self, engine: GameEngine) -> None:
        with pytest.raises(NotFound):
            engine.get_session("doesnotexist")

    async def test_interactions_listed_oldest_first(self, engine: GameEngine) -> None:
        sid = _start(engine)
        await engine.advance_turn(sid, None)
        await engine.advance_turn(sid, "no")
        log = engine.get_interactions(sid)
        assert [i.player_message for i in log] == [None, "no"]


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------

class TestAdvanceTurn:
    async def test_opening_turn(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(message="Hello! Antennas?", balance=100))
        sid = _start(engine)
        result = await engine.advance_turn(sid, None)
        assert result.reply_message == "Hello! Antennas?"
        assert result.balance == 100
        assert result.character_name == "Anna Antenni"
        assert result.expression_assets == ["smile-1.svg", "smile-2.svg"]
        assert result.quick_actions == ["No", "Maybe", "Yes"]
        assert result.game_over is False
        assert "This is the first interaction." in stub_llm.prompts[0]
        [logged] = engine.get_interactions(sid)
        assert logged.player_message is None
        assert logged.balance_before == 100

    async def test_second_null_message_rejected(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        sid = _start(engine)
        await engine.advance_turn(sid, None)
        with pytest.raises(BadRequest):
            await engine.advance_turn(sid, None)
        assert len(stub_llm.calls) == 1
        assert len(engine.get_interactions(sid)) == 1

    async def test_null_message_allowed_after_resolution(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(encounter_resolved=True))
        sid = _start(engine)
        await engine.advance_turn(sid, "no way")
        result = await engine.advance_turn(sid, None)
        assert result.character_name == "Bertta Banaani"

    @pytest.mark.parametrize("message", [42, ["hi"], "", "   "])
    async def test_invalid_message(self, engine: GameEngine, stub_llm: StubLLM, message) -> None:
        sid = _start(engine)
        with pytest.raises(BadRequest):
            await engine.advance_turn(sid, message)
        assert stub_llm.calls == []

    async def test_unknown_session(self, engine: GameEngine) -> None:
        with pytest.raises(NotFound):
            await engine.advance_turn("doesnotexist", "hi")

    async def test_player_message_reaches_prompt_stripped(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        sid = _start(engine)
        await engine.advance_turn(sid, "  I only have cash  ")
        assert 'Customer\'s latest message: "I only have cash"' in stub_llm.prompts[0]
        assert engine.get_interactions(sid)[0].player_message == "I only have cash"

    async def test_balance_decrease_applied(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=70))
        sid = _start(engine)
        result = await engine.advance_turn(sid, "fine, one antenna")
        assert result.balance == 70
        assert engine.ledger.current_balance(sid) == 70

    async def test_balance_increase_clamped(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=70), reply(balance=150))
        sid = _start(engine)
        await engine.advance_turn(sid, "ok")
        result = await engine.advance_turn(sid, "refund me")
        assert result.balance == 70
        last = engine.get_interactions(sid)[-1]
        assert (last.balance_before, last.balance_after) == (70, 70)

    async def test_history_only_for_current_character(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(message="Anna line", encounter_resolved=True))
        sid = _start(engine)
        await engine.advance_turn(sid, "bye")
        await engine.advance_turn(sid, None)
        assert "Anna line" not in stub_llm.prompts[1]

    async def test_resolution_moves_to_successor(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(encounter_resolved=True))
        sid = _start(engine)
        result = await engine.advance_turn(sid, "no")
        assert result.encounter_resolved is True
        assert result.character_name == "Anna Antenni"
        assert result.defeated_count == 1
        assert engine.storage.get_session(sid).current_character_id == "bertta"

    async def test_successor_wraps_around(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(expression="fizz", encounter_resolved=True))
        sid = _start(engine, "cecilia")
        await engine.advance_turn(sid, "no")
        assert engine.storage.get_session(sid).current_character_id == "anna"

    async def test_threat_escalation(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(escalate_threat=True), reply(escalate_threat=True), reply())
        sid = _start(engine)
        first = await engine.advance_turn(sid, "no")
        second = await engine.advance_turn(sid, "still no")
        third = await engine.advance_turn(sid, "never")
        assert (first.threat_level, second.threat_level, third.threat_level) == (1, 2, 2)
        assert engine.storage.get_session(sid).threat_level == 2
        assert "Current threat level: 2" in stub_llm.prompts[2]

    async def test_llm_failure_resolves_with_fallback(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(LLMError("down"))
        sid = _start(engine)
        result = await engine.advance_turn(sid, "hello?")
        assert result.reply_message == FALLBACK_MESSAGE
        assert result.balance == 100
        assert result.encounter_resolved is True
        assert engine.storage.get_session(sid).current_character_id == "bertta"

    async def test_no_oracle(self, storage) -> None:
        engine = GameEngine(storage)
        sid = _start(engine)
        with pytest.raises(ServiceUnavailable):
            await engine.advance_turn(sid, None)
        assert engine.get_interactions(sid) == []

    async def test_current_character_missing(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        sid = _start(engine, "ghost")
        with pytest.raises(InternalError):
            await engine.advance_turn(sid, "hi")
        assert stub_llm.calls == []

    async def test_oracle_crash_is_internal_error(self, storage) -> None:
        class CrashingOracle:
            async def converse(self, *args, **kwargs):
                raise RuntimeError("boom")

        engine = GameEngine(storage, CrashingOracle())
        sid = _start(engine)
        with pytest.raises(InternalError):
            await engine.advance_turn(sid, None)
        assert engine.get_interactions(sid) == []
        assert engine.storage.get_session(sid).active is True

    async def test_deeply_nested_llm_output_gets_fallback(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue("[" * 200_000 + "]" * 200_000)
        sid = _start(engine)
        result = await engine.advance_turn(sid, None)
        assert result.reply_message == FALLBACK_MESSAGE
        assert result.encounter_resolved is True
        assert result.game_over is False


# ---------------------------------------------------------------------------
# Endings
# ---------------------------------------------------------------------------

class TestGameOver:
    async def test_bankrupt_scores_balance_before_fatal_turn(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(
            reply(balance=90, encounter_resolved=True),
            reply(expression="grin", balance=0),
        )
        sid = _start(engine)
        await engine.advance_turn(sid, "fine")
        result = await engine.advance_turn(sid, "take it all")
        assert result.game_over is True
        assert result.balance == 0
        assert result.defeated_count == 1
        assert result.score == 90
        assert engine.storage.get_session(sid).active is False
        entry = engine.leaderboard.get_for_session(sid)
        assert entry.score == 90
        assert entry.final_balance == 0

    async def test_turn_after_end_is_gone(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=0))
        sid = _start(engine)
        await engine.advance_turn(sid, "ok")
        with pytest.raises(Gone):
            await engine.advance_turn(sid, "wait")
        assert len(stub_llm.calls) == 1

    async def test_time_up_ends_without_oracle_call(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=60, encounter_resolved=True))
        sid = _start(engine)
        await engine.advance_turn(sid, "no")
        _age(engine, sid, timedelta(minutes=4))
        result = await engine.advance_turn(sid, "hello?")
        assert result.reply_message == TIME_UP_MESSAGE
        assert result.game_over is True
        assert result.balance == 60
        assert result.score == 60
        assert len(stub_llm.calls) == 1
        assert engine.storage.get_session(sid).active is False
        assert engine.leaderboard.get_for_session(sid).score == 60

    async def test_time_up_checked_before_message_validation(self, engine: GameEngine) -> None:
        sid = _start(engine)
        await engine.advance_turn(sid, None)
        _age(engine, sid, timedelta(minutes=3))
        result = await engine.advance_turn(sid, None)
        assert result.game_over is True

    async def test_time_up_without_oracle(self, storage) -> None:
        engine = GameEngine(storage)
        sid = _start(engine)
        _age(engine, sid, timedelta(minutes=10))
        result = await engine.advance_turn(sid, "hi")
        assert result.game_over is True
        assert result.score == 0

    async def test_zero_balance_on_active_session_ends_game(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        sid = _start(engine)
        engine.ledger.append_interaction(sid, Interaction(
            character_id="anna", character_name="Anna Antenni",
            reply_message="Sold!", balance_before=100, balance_after=0,
        ))
        result = await engine.advance_turn(sid, "wait")
        assert result.reply_message == OUT_OF_MONEY_MESSAGE
        assert result.balance == 0
        assert result.game_over is True
        assert stub_llm.calls == []
        assert engine.storage.get_session(sid).active is False

    async def test_fatal_turn_still_records_escalation(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=0, escalate_threat=True))
        sid = _start(engine)
        result = await engine.advance_turn(sid, "ok")
        assert result.game_over is True
        assert engine.storage.get_session(sid).threat_level == 1


# ---------------------------------------------------------------------------
# Leaderboard recording
# ---------------------------------------------------------------------------

class TestRecordResult:
    def test_active_session_rejected(self, engine: GameEngine) -> None:
        sid = _start(engine)
        with pytest.raises(BadRequest):
            engine.record_result(sid)

    def test_missing_session(self, engine: GameEngine) -> None:
        with pytest.raises(NotFound):
            engine.record_result("doesnotexist")

    async def test_returns_existing_entry(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=0))
        sid = _start(engine)
        await engine.advance_turn(sid, "ok")
        first = engine.leaderboard.get_for_session(sid)
        assert engine.record_result(sid).id == first.id
        assert engine.storage.count_leaderboard() == 1

    async def test_records_when_missing(self, engine: GameEngine, stub_llm: StubLLM) -> None:
        stub_llm.queue(reply(balance=40, encounter_resolved=True))
        sid = _start(engine)
        await engine.advance_turn(sid, "fine")
        engine.storage.update_session(sid, {"active": False})
        entry = engine.record_result(sid)
        assert entry.score == 40
        assert entry.defeated_count == 1
        assert entry.owner_name == "Anonymous"
