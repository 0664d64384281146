from contextlib import asynccontextmanager
from openai import AsyncOpenAI
from typing import AsyncIterator, Optional
import httpx
from .agent_tools import AgentTools
from .config import Config
from .conversation import ConversationStore, oracle_messages
from .movie_api import MovieDatabaseClient
from .models import (
    DisplayRecord,
    Fragment,
    FragmentKind,
    InProgress,
    InvocationStatus,
    Message,
    Role,
    ToolInvocation,
)
from structlog import get_logger

logger = get_logger("app")

LOADING_PLACEHOLDER = Fragment(kind=FragmentKind.LOADING, paragraphs=["Loading..."])


class OracleError(RuntimeError):
    """The completion stream failed or ended without a decision."""


class MovieBot:
    def __init__(self, config: Config, openai_client: AsyncOpenAI, agent_tools: AgentTools):
        self.llm_client = openai_client
        self.tools = agent_tools
        self.config = config
        logger.info("MovieBotInitialized", model=config.generative_model_id)

    async def _call_oracle(self, store: ConversationStore):
        return await self.llm_client.responses.create(
            model=self.config.generative_model_id,
            input=oracle_messages(store),
            tools=self.tools.get_tools(),
            tool_choice=self.config.tool_choice.value,
            temperature=self.config.temperature,
            parallel_tool_calls=False,
            stream=True,
        )

    async def stream_message(
        self, store: ConversationStore, text: str, record_id: Optional[int] = None
    ) -> AsyncIterator[DisplayRecord]:
        """Run one turn, yielding the assistant record each time its display changes.

        Every yielded record has the same id; the last one is terminal. The
        store gains the user message straight away and the reply (or the
        tool summary) once it is known.
        """
        if not text or not text.strip():
            raise ValueError("message must not be empty")

        store.update(Message(role=Role.USER, content=text))
        record = DisplayRecord(role="assistant", display=LOADING_PLACEHOLDER)
        if record_id is not None:
            record = record.model_copy(update={"id": record_id})
        yield record

        stream = await self._call_oracle(store)
        content = ""
        tool_call = None
        completed = False
        async for event in stream:
            if event.type == "response.output_text.delta":
                if tool_call is not None:
                    continue
                content += event.delta
                record = record.model_copy(
                    update={"display": Fragment(kind=FragmentKind.TEXT, paragraphs=[content])}
                )
                yield record
            elif event.type == "response.output_item.done":
                if event.item.type == "function_call" and tool_call is None:
                    tool_call = event.item
            elif event.type == "response.completed":
                completed = True
            elif event.type in ("response.failed", "response.incomplete", "error"):
                logger.error("OracleStreamFailed", event_type=event.type)
                raise OracleError(f"completion stream ended with '{event.type}'")

        if tool_call is not None:
            async for record in self._run_tool(store, record, tool_call.name, tool_call.arguments):
                yield record
            return

        if not completed:
            raise OracleError("completion stream ended without completing")

        store.done(Message(role=Role.ASSISTANT, content=content))
        logger.info("TextReplyCompleted", length=len(content))
        # a reply with no text still closes the turn with a text fragment
        if record.display.kind != FragmentKind.TEXT:
            record = record.model_copy(
                update={"display": Fragment(kind=FragmentKind.TEXT, paragraphs=[content])}
            )
            yield record

    async def _run_tool(
        self, store: ConversationStore, record: DisplayRecord, name: str, arguments: str
    ) -> AsyncIterator[DisplayRecord]:
        tool_name, params = self.tools.validate(name, arguments)
        logger.info("ToolSelected", tool=tool_name.value, arguments=arguments)
        invocation = ToolInvocation(
            tool_name=tool_name, parameters=params.model_dump(exclude_none=True)
        )
        async for step in self.tools.generate(tool_name, params, store):
            if isinstance(step, InProgress):
                status = InvocationStatus.IN_PROGRESS
            elif step.succeeded:
                status = InvocationStatus.DONE
            else:
                status = InvocationStatus.FAILED
            invocation = invocation.model_copy(
                update={"status": status, "result": step.fragment}
            )
            yield record.model_copy(
                update={"display": step.fragment, "tool_invocation": invocation}
            )

    async def send_message(self, store: ConversationStore, text: str) -> DisplayRecord:
        record: Optional[DisplayRecord] = None
        async for record in self.stream_message(store, text):
            pass
        return record


@asynccontextmanager
async def open_movie_bot(
    config: Config,
    openai_client: Optional[AsyncOpenAI] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[MovieBot]:
    """Build a bot whose clients live only as long as the current event loop."""
    client = openai_client or AsyncOpenAI(
        api_key=config.open_ai_key, timeout=config.request_timeout_seconds
    )
    movie_api = MovieDatabaseClient(config, http_client)
    try:
        yield MovieBot(config, client, AgentTools(config, movie_api))
    finally:
        await movie_api.aclose()
        await client.close()
