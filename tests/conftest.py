import json
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple

import httpx
import pytest

from moviebot.agent_tools import AgentTools
from moviebot.config import Config
from moviebot.movie_api import MovieDatabaseClient
from moviebot.movie_bot import MovieBot

INCEPTION = {
    "Title": "Inception",
    "title": "Inception",
    "overview": "A thief who steals corporate secrets through dream-sharing technology.",
    "release_date": "2010-07-15",
    "vote_average": 8.4,
    "Actors": "Leonardo DiCaprio, Joseph Gordon-Levitt",
    "Year": 2010,
    "imdbID": "tt1375666",
}


def text_events(*chunks: str) -> List[SimpleNamespace]:
    events = [
        SimpleNamespace(type="response.output_text.delta", delta=chunk) for chunk in chunks
    ]
    events.append(
        SimpleNamespace(
            type="response.output_item.done",
            item=SimpleNamespace(type="message", content="".join(chunks)),
        )
    )
    events.append(SimpleNamespace(type="response.completed"))
    return events


def tool_events(name: str, arguments: Any) -> List[SimpleNamespace]:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    item = SimpleNamespace(
        type="function_call", name=name, arguments=arguments, call_id="call_1"
    )
    return [
        SimpleNamespace(type="response.output_item.added", item=item),
        SimpleNamespace(type="response.function_call_arguments.delta", delta=arguments),
        SimpleNamespace(type="response.output_item.done", item=item),
        SimpleNamespace(type="response.completed"),
    ]


class FakeStream:
    def __init__(self, events):
        self._events = events

    async def __aiter__(self):
        for event in self._events:
            yield event


class FakeResponses:
    def __init__(self, scripts):
        self.scripts = list(scripts)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return FakeStream(self.scripts.pop(0))


class FakeOpenAI:
    """Stands in for AsyncOpenAI; each call consumes one scripted event list."""

    def __init__(self, *scripts):
        self.responses = FakeResponses(scripts)
        self.closed = False

    async def close(self):
        self.closed = True


class FakeMovieDatabase:
    """Routes provider requests by path to canned (status, body) pairs."""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, Any]] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(request.url.path, (404, {"message": "not found"}))
        return httpx.Response(status, json=body)


@pytest.fixture
def config():
    return Config(
        open_ai_key="sk-test",
        rapidapi_key="rapid-test",
        movie_api_base_url="https://movies.test",
        ui_delay_seconds=0,
        request_timeout_seconds=5,
    )


@pytest.fixture
def movie_db():
    return FakeMovieDatabase()


@pytest.fixture
def movie_api(config, movie_db):
    http_client = httpx.AsyncClient(
        base_url=config.movie_api_url, transport=httpx.MockTransport(movie_db.handler)
    )
    return MovieDatabaseClient(config, http_client)


@pytest.fixture
def agent_tools(config, movie_api):
    return AgentTools(config, movie_api)


@pytest.fixture
def make_bot(config, agent_tools):
    def _make(*scripts):
        return MovieBot(config, FakeOpenAI(*scripts), agent_tools)

    return _make
