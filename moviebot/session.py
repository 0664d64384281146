import asyncio
import time
import uuid
from collections import OrderedDict
from typing import AsyncIterator, Callable, List, Optional
from uuid import UUID
from structlog import get_logger
from .conversation import ConversationStore
from .models import DisplayRecord, Fragment, FragmentKind
from .movie_bot import MovieBot

logger = get_logger("session")


class MovieBotSession:
    """Conversation state for one user, with turns run one at a time.

    ``bot`` may be left out and handed to each turn instead, for callers
    whose clients cannot outlive a single event loop.
    """

    def __init__(self, bot: Optional[MovieBot] = None, conversation_id: Optional[UUID] = None):
        self.bot = bot
        self.conversation_id = conversation_id or uuid.uuid4()
        self.store = ConversationStore()
        self.records: List[DisplayRecord] = []
        self._last_id = 0
        self._lock = asyncio.Lock()

    def _next_id(self) -> int:
        # millisecond timestamps, bumped so two records never share one
        self._last_id = max(self._last_id + 1, int(time.time() * 1000))
        return self._last_id

    async def stream_message(
        self, text: str, bot: Optional[MovieBot] = None
    ) -> AsyncIterator[DisplayRecord]:
        bot = bot or self.bot
        if bot is None:
            raise ValueError("no bot to run the turn with")
        async with self._lock:
            self.records.append(
                DisplayRecord(
                    id=self._next_id(),
                    role="user",
                    display=Fragment(kind=FragmentKind.TEXT, paragraphs=[text]),
                )
            )
            record = None
            try:
                async for record in bot.stream_message(
                    self.store, text, record_id=self._next_id()
                ):
                    yield record
            finally:
                if record is not None:
                    self.records.append(record)

    async def send_message(self, text: str, bot: Optional[MovieBot] = None) -> DisplayRecord:
        record = None
        async for record in self.stream_message(text, bot):
            pass
        return record


class SessionRegistry:
    """Sessions keyed by conversation id, sharing one lazily built bot.

    Holds at most ``max_sessions``; the least recently used one is dropped
    when a new session would exceed that.
    """

    def __init__(self, bot_factory: Callable[[], MovieBot], max_sessions: int = 1000):
        self._bot_factory = bot_factory
        self._bot: Optional[MovieBot] = None
        self._sessions: "OrderedDict[UUID, MovieBotSession]" = OrderedDict()
        self.max_sessions = max_sessions

    @property
    def bot(self) -> MovieBot:
        if self._bot is None:
            self._bot = self._bot_factory()
        return self._bot

    def get(self, conversation_id: UUID) -> MovieBotSession:
        session = self._sessions.get(conversation_id)
        if session is not None:
            self._sessions.move_to_end(conversation_id)
            return session

        session = MovieBotSession(self.bot, conversation_id)
        self._sessions[conversation_id] = session
        logger.info("SessionCreated", conversation_id=str(conversation_id))
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("SessionEvicted", conversation_id=str(evicted))
        return session

    async def aclose(self):
        self._sessions.clear()
        if self._bot is None:
            return
        await self._bot.tools.movie_api.aclose()
        await self._bot.llm_client.close()
        self._bot = None

    def __len__(self) -> int:
        return len(self._sessions)
