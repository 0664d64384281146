import asyncio
from moviebot.agent_tools import AgentTools
from moviebot.config import get_config
from moviebot.movie_api import MovieDatabaseClient
from moviebot.movie_bot import MovieBot
from moviebot.session import MovieBotSession
from openai import AsyncOpenAI

SCENARIOS = [
    "tell me about tt1375666",
    "who is in tt1375666",
    "find movies called Inception",
    "show me action movies after 2010 with rating above 7",
    "what's the weather today",
]


def startup_application() -> MovieBot:
    config = get_config()
    print(f"Using model: {config.generative_model_id}")
    client = AsyncOpenAI(api_key=config.open_ai_key, timeout=config.request_timeout_seconds)
    tools = AgentTools(config, MovieDatabaseClient(config))
    return MovieBot(config, client, tools)


async def test_movie_bot_flow() -> bool:
    print("Starting smoke test for Movie Bot...")

    bot = startup_application()
    session = MovieBotSession(bot)

    for prompt in SCENARIOS:
        before = len(session.store)
        record = await session.send_message(prompt)
        print(f"> {prompt}")
        print(record.display.to_markdown())
        print(f"history: {before} -> {len(session.store)}\n")

    await bot.tools.movie_api.aclose()
    return len(session.store) >= len(SCENARIOS)


if __name__ == "__main__":
    success = asyncio.run(test_movie_bot_flow())
    exit(0 if success else 1)
