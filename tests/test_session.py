import asyncio
import uuid

import httpx

from conftest import INCEPTION, FakeOpenAI, text_events, tool_events
from moviebot.movie_bot import open_movie_bot
from moviebot.models import FragmentKind
from moviebot.session import MovieBotSession, SessionRegistry


async def test_session_records_user_and_assistant_entries(make_bot):
    session = MovieBotSession(make_bot(text_events("Hello!")))

    record = await session.send_message("hi")

    assert [r.role for r in session.records] == ["user", "assistant"]
    assert session.records[-1] == record
    assert record.display.kind == FragmentKind.TEXT
    assert len(session.store) == 2


async def test_overlapping_turns_are_serialized(make_bot, movie_db):
    movie_db.routes["/FindByImbdId/tt1375666"] = (200, [INCEPTION])
    session = MovieBotSession(
        make_bot(
            tool_events("get_movie_info", {"imdbId": "tt1375666"}),
            text_events("Anything else?"),
        )
    )

    await asyncio.gather(
        session.send_message("tell me about tt1375666"),
        session.send_message("thanks"),
    )

    assert [m.content for m in session.store.get()] == [
        "tell me about tt1375666",
        "[Information about Inception]",
        "thanks",
        "Anything else?",
    ]


def test_registry_builds_bot_lazily_and_reuses_sessions(make_bot):
    built = []

    def factory():
        built.append(make_bot())
        return built[-1]

    registry = SessionRegistry(factory)
    assert built == []

    conversation_id = uuid.uuid4()
    first = registry.get(conversation_id)
    again = registry.get(conversation_id)
    other = registry.get(uuid.uuid4())

    assert first is again
    assert other is not first
    assert first.bot is other.bot
    assert len(built) == 1
    assert len(registry) == 2


async def test_record_ids_are_unique_within_a_session(make_bot):
    session = MovieBotSession(
        make_bot(text_events("Hello!"), text_events("Bye!"), text_events("Again?"))
    )

    for text in ["hi", "bye", "hi again"]:
        await session.send_message(text)

    ids = [r.id for r in session.records]
    assert len(ids) == 6
    assert len(set(ids)) == 6
    assert ids == sorted(ids)


def test_turns_on_separate_event_loops_share_history(config, movie_db):
    movie_db.routes["/FindByImbdId/tt1375666"] = (200, [INCEPTION])
    session = MovieBotSession()
    scripts = [
        tool_events("get_movie_info", {"imdbId": "tt1375666"}),
        text_events("Enjoy the movie."),
    ]
    http_clients = []

    async def turn(text, script):
        http_client = httpx.AsyncClient(
            base_url=config.movie_api_url,
            transport=httpx.MockTransport(movie_db.handler),
        )
        http_clients.append(http_client)
        openai_client = FakeOpenAI(script)
        async with open_movie_bot(config, openai_client, http_client) as bot:
            await session.send_message(text, bot)
        assert openai_client.closed

    asyncio.run(turn("tell me about tt1375666", scripts[0]))
    asyncio.run(turn("thanks", scripts[1]))

    assert [m.content for m in session.store.get()] == [
        "tell me about tt1375666",
        "[Information about Inception]",
        "thanks",
        "Enjoy the movie.",
    ]
    assert all(client.is_closed for client in http_clients)


def test_registry_evicts_least_recently_used(make_bot):
    registry = SessionRegistry(make_bot, max_sessions=2)
    first, second, third = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    kept = registry.get(first)
    registry.get(second)
    registry.get(first)
    registry.get(third)
    assert registry.get(first) is kept
    for _ in range(10):
        registry.get(uuid.uuid4())
        assert len(registry) == 2

    assert registry.get(first) is not kept


async def test_registry_close_releases_clients(make_bot, movie_api):
    registry = SessionRegistry(make_bot)
    bot = registry.get(uuid.uuid4()).bot

    await registry.aclose()

    assert len(registry) == 0
    assert bot.llm_client.closed
    assert movie_api._client.is_closed
