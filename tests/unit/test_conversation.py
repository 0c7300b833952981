"""Unit tests for ConversationActor and ConversationRegistry."""
import asyncio

import pytest

from vidnotes.core.config import settings
from vidnotes.core.exceptions import BackendTimeoutError
from vidnotes.models.chat import ChatMessage, ChatResponse, TurnState
from vidnotes.services.conversation import ConversationActor, ConversationRegistry


class ScriptedEngine:
    """Answers after a per-question delay and records the history it was given."""

    def __init__(self, delays=None, failures=None):
        self.delays = delays or {}
        self.failures = failures or {}
        self.seen_history = {}
        self.started = []

    async def answer(self, question, context=None, history=(), current_note=None,
                     current_format=None, request_id=None):
        self.started.append(question)
        self.seen_history[question] = [message.content for message in history]
        await asyncio.sleep(self.delays.get(question, 0))
        if question in self.failures:
            raise self.failures[question]
        return ChatResponse(response=f"answer to {question}", notes_only=True)


class TestConversationActor:
    """Test cases for per-conversation ordering."""

    @pytest.mark.asyncio
    async def test_turns_are_answered_in_submission_order(self):
        engine = ScriptedEngine(delays={"q1": 0.05, "q2": 0.0, "q3": 0.01})
        actor = ConversationActor("conv_1", engine)

        answers = await asyncio.gather(actor.ask("q1"), actor.ask("q2"), actor.ask("q3"))

        assert [a.response for a in answers] == ["answer to q1", "answer to q2", "answer to q3"]
        assert engine.started == ["q1", "q2", "q3"]
        # The default history limit keeps the last five messages
        assert [m.content for m in actor.history] == [
            "answer to q1", "q2", "answer to q2", "q3", "answer to q3"
        ]
        assert all(turn.state == TurnState.ANSWERED for turn in actor.turns)
        await actor.close()

    @pytest.mark.asyncio
    async def test_each_turn_sees_the_previous_answers(self):
        engine = ScriptedEngine(delays={"q1": 0.02})
        actor = ConversationActor("conv_1", engine, seed_history=[ChatMessage(content="hello")])

        await asyncio.gather(actor.ask("q1"), actor.ask("q2"))

        assert engine.seen_history["q1"] == ["hello"]
        assert engine.seen_history["q2"] == ["hello", "q1", "answer to q1"]
        await actor.close()

    @pytest.mark.asyncio
    async def test_failed_turn_is_recorded_and_next_turn_proceeds(self):
        engine = ScriptedEngine(failures={"bad": BackendTimeoutError("chat:full", 60)})
        actor = ConversationActor("conv_1", engine)

        with pytest.raises(BackendTimeoutError):
            await actor.ask("bad")
        answer = await actor.ask("good")

        assert answer.response == "answer to good"
        states = [(turn.question, turn.state, turn.error_code) for turn in actor.turns]
        assert states == [
            ("bad", TurnState.FAILED, "BACKEND_TIMEOUT"),
            ("good", TurnState.ANSWERED, None),
        ]
        assert [m.content for m in actor.history] == ["bad", "good", "answer to good"]
        await actor.close()

    @pytest.mark.asyncio
    async def test_unexpected_error_reaches_the_caller(self):
        engine = ScriptedEngine(failures={"boom": RuntimeError("unexpected")})
        actor = ConversationActor("conv_1", engine)

        with pytest.raises(RuntimeError):
            await actor.ask("boom")

        assert actor.turns[0].error_code == "INTERNAL_ERROR"
        await actor.close()

    @pytest.mark.asyncio
    async def test_history_is_trimmed_to_the_limit(self, monkeypatch):
        monkeypatch.setattr(settings, "chat_history_limit", 2)
        engine = ScriptedEngine()
        actor = ConversationActor("conv_1", engine, seed_history=[ChatMessage(content="hello")])

        for question in ("q1", "q2", "q3"):
            await actor.ask(question)

        assert [m.content for m in actor.history] == ["q3", "answer to q3"]
        assert engine.seen_history["q3"] == ["q2", "answer to q2"]
        await actor.close()

    @pytest.mark.asyncio
    async def test_idle_worker_exits_and_restarts(self):
        actor = ConversationActor("conv_1", ScriptedEngine(), idle_seconds=0.05)

        await actor.ask("q1")
        await asyncio.sleep(0.2)

        assert actor.is_running is False

        answer = await actor.ask("q2")

        assert answer.response == "answer to q2"
        assert actor.is_running is True
        await actor.close()


class TestConversationRegistry:
    """Test cases for conversation lookup."""

    @pytest.mark.asyncio
    async def test_get_or_create_reuses_actors(self):
        registry = ConversationRegistry(ScriptedEngine())

        first = registry.get_or_create("conv_a")
        again = registry.get_or_create("conv_a", seed_history=[ChatMessage(content="ignored")])
        generated = registry.get_or_create()

        assert first is again
        assert first.history == []
        assert generated.conversation_id.startswith("conv_")
        assert registry.get(generated.conversation_id) is generated
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_close_all(self):
        registry = ConversationRegistry(ScriptedEngine())
        actor = registry.get_or_create("conv_a")
        await actor.ask("q1")

        await registry.close_all()

        assert len(registry) == 0
        assert registry.get("conv_a") is None


class TestConversationRegistryBounds:
    """Test cases for evicting conversations."""

    @pytest.mark.asyncio
    async def test_least_recently_used_conversations_are_evicted(self):
        registry = ConversationRegistry(ScriptedEngine(), max_conversations=5)
        actors = []
        for _ in range(20):
            actor = registry.get_or_create()
            await actor.ask("q")
            actors.append(actor)
        await asyncio.sleep(0.05)

        assert len(registry) == 5
        assert [registry.get(actor.conversation_id) for actor in actors[-5:]] == actors[-5:]
        assert not any(actor.is_running for actor in actors[:-5])
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_reused_conversation_is_kept(self):
        registry = ConversationRegistry(ScriptedEngine(), max_conversations=2)
        first = registry.get_or_create("conv_a")
        registry.get_or_create("conv_b")

        assert registry.get_or_create("conv_a") is first
        registry.get_or_create("conv_c")

        assert registry.get("conv_a") is first
        assert registry.get("conv_b") is None
        await registry.close_all()
