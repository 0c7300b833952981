"""Per-conversation serialization of Q&A turns."""
import asyncio
import uuid
from collections import OrderedDict, deque
from typing import Deque, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.exceptions import VideoNotesBaseException
from ..models.analysis import ChatbotVideoContext
from ..models.chat import ChatMessage, ChatResponse, ConversationTurn, TurnState
from ..utils.logging import CorrelatedLogger
from .qa_engine import QAEngine

_STOP = object()

MAX_TRACKED_TURNS = 50


class ConversationActor:
    """
    Owns the history of one conversation.

    Turns go through a queue and a single worker task, so questions are
    answered and appended to the history strictly in submission order.
    The worker exits after ``idle_seconds`` without a question and is
    started again by the next one.
    """

    def __init__(
        self,
        conversation_id: str,
        engine: QAEngine,
        seed_history: Sequence[ChatMessage] = (),
        idle_seconds: Optional[float] = None
    ):
        self.conversation_id = conversation_id
        self.engine = engine
        self.idle_seconds = settings.conversation_idle_seconds if idle_seconds is None else idle_seconds
        self.logger = CorrelatedLogger(__name__)
        # Only the most recent messages are ever sent to the engine
        self._history: Deque[ChatMessage] = deque(seed_history, maxlen=max(settings.chat_history_limit, 0))
        self._turns: Deque[ConversationTurn] = deque(maxlen=MAX_TRACKED_TURNS)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def history(self) -> List[ChatMessage]:
        return list(self._history)

    @property
    def turns(self) -> List[ConversationTurn]:
        return list(self._turns)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def _ensure_worker(self) -> None:
        if not self.is_running:
            self._worker = asyncio.create_task(self._run())

    async def ask(
        self,
        question: str,
        context: Optional[ChatbotVideoContext] = None,
        current_note: Optional[str] = None,
        current_format: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> ChatResponse:
        """Queue a question and wait for its answer; raises what the engine raised."""
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        turn = ConversationTurn(question=question, state=TurnState.AWAITING_ANSWER)
        await self._queue.put((turn, (context, current_note, current_format, request_id), future))
        return await future

    async def _run(self) -> None:
        while True:
            try:
                item = await asyncio.wait_for(self._queue.get(), timeout=self.idle_seconds)
            except asyncio.TimeoutError:
                if self._queue.empty():
                    self.logger.debug(f"Conversation {self.conversation_id} idle, stopping worker")
                    return
                continue

            try:
                if item is _STOP:
                    return
                turn, arguments, future = item
                await self._process(turn, arguments, future)
            finally:
                self._queue.task_done()

    async def _process(self, turn: ConversationTurn, arguments: Tuple, future: asyncio.Future) -> None:
        context, current_note, current_format, request_id = arguments

        try:
            answer = await self.engine.answer(
                turn.question,
                context=context,
                history=list(self._history),
                current_note=current_note,
                current_format=current_format,
                request_id=request_id
            )
        except VideoNotesBaseException as e:
            turn = turn.model_copy(update={"state": TurnState.FAILED, "error_code": e.error_code})
            self._turns.append(turn)
            self._history.extend(turn.as_messages())
            if not future.done():
                future.set_exception(e)
            return
        except Exception as e:
            self.logger.exception(f"Conversation {self.conversation_id} turn failed")
            self._turns.append(turn.model_copy(update={"state": TurnState.FAILED, "error_code": "INTERNAL_ERROR"}))
            if not future.done():
                future.set_exception(e)
            return

        turn = turn.model_copy(update={"state": TurnState.ANSWERED, "answer": answer})
        self._turns.append(turn)
        self._history.extend(turn.as_messages())
        if not future.done():
            future.set_result(answer)

    def stop(self) -> None:
        """Let the worker finish queued turns, then exit."""
        if self.is_running:
            self._queue.put_nowait(_STOP)

    async def close(self) -> None:
        if self.is_running:
            worker = self._worker
            self.stop()
            await worker


class ConversationRegistry:
    """
    Maps conversation ids to their actors.

    Holds at most ``max_conversations`` actors; the least recently used one
    is stopped and dropped when a new conversation would exceed the limit.
    """

    def __init__(self, engine: QAEngine, max_conversations: Optional[int] = None):
        self.engine = engine
        self.max_conversations = max_conversations or settings.max_conversations
        self.logger = CorrelatedLogger(__name__)
        self._actors: "OrderedDict[str, ConversationActor]" = OrderedDict()

    def get_or_create(
        self,
        conversation_id: Optional[str] = None,
        seed_history: Sequence[ChatMessage] = ()
    ) -> ConversationActor:
        conversation_id = conversation_id or f"conv_{uuid.uuid4().hex[:12]}"
        actor = self._actors.get(conversation_id)
        if actor is not None:
            self._actors.move_to_end(conversation_id)
            return actor

        actor = ConversationActor(conversation_id, self.engine, seed_history)
        self._actors[conversation_id] = actor
        while len(self._actors) > self.max_conversations:
            evicted_id, evicted = self._actors.popitem(last=False)
            evicted.stop()
            self.logger.debug(f"Evicted conversation {evicted_id}")
        return actor

    def get(self, conversation_id: str) -> Optional[ConversationActor]:
        return self._actors.get(conversation_id)

    def __len__(self) -> int:
        return len(self._actors)

    async def close_all(self) -> None:
        for actor in list(self._actors.values()):
            await actor.close()
        self._actors.clear()
