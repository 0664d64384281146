from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from contextlib import asynccontextmanager
from typing import Callable
import json
from structlog import get_logger
from moviebot.agent_tools import AgentTools, InvalidToolCall
from moviebot.config import get_config
from moviebot.models import MovieBotRequest, MovieBotResponse
from moviebot.movie_api import MovieDatabaseClient
from moviebot.movie_bot import MovieBot
from moviebot.session import SessionRegistry
from openai import AsyncOpenAI

logger = get_logger("server")


def startup_application() -> MovieBot:
    config = get_config()
    client = AsyncOpenAI(api_key=config.open_ai_key, timeout=config.request_timeout_seconds)
    tools = AgentTools(config, MovieDatabaseClient(config))
    return MovieBot(config, client, tools)


def create_app(
    bot_factory: Callable[[], MovieBot] = startup_application, max_sessions: int = 1000
) -> Starlette:
    sessions = SessionRegistry(bot_factory, max_sessions=max_sessions)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        await sessions.aclose()
        logger.info("ClientsClosed")

    async def read_request(request: Request) -> MovieBotRequest:
        body = await request.json()
        return MovieBotRequest(**body)

    async def send_message_endpoint(request: Request):
        try:
            bot_request = await read_request(request)
            session = sessions.get(bot_request.conversation_id)

            record = await session.send_message(bot_request.user_input)

            response = MovieBotResponse.from_record(record, session.conversation_id)
            return JSONResponse(response.model_dump(mode="json"))
        except ValidationError as e:
            return JSONResponse(
                {"error": "Invalid request format", "details": str(e)}, status_code=422
            )
        except json.JSONDecodeError:
            return JSONResponse({"error": "Invalid JSON format"}, status_code=400)
        except InvalidToolCall as e:
            logger.error("InvalidToolCall", details=str(e))
            return JSONResponse(
                {"error": "Invalid tool call from model", "details": str(e)},
                status_code=502,
            )
        except Exception as e:
            logger.exception("SendMessageFailed")
            return JSONResponse(
                {"error": "Internal server error", "details": str(e)}, status_code=500
            )

    async def stream_message_endpoint(request: Request):
        try:
            bot_request = await read_request(request)
        except ValidationError as e:
            return JSONResponse(
                {"error": "Invalid request format", "details": str(e)}, status_code=422
            )
        except json.JSONDecodeError:
            return JSONResponse({"error": "Invalid JSON format"}, status_code=400)

        session = sessions.get(bot_request.conversation_id)

        async def updates():
            try:
                async for record in session.stream_message(bot_request.user_input):
                    response = MovieBotResponse.from_record(record, session.conversation_id)
                    yield response.model_dump_json() + "\n"
            except Exception as e:
                # headers are already sent, report the failure in-band
                logger.exception("StreamMessageFailed")
                yield json.dumps({"error": "Internal server error", "details": str(e)}) + "\n"

        return StreamingResponse(updates(), media_type="application/x-ndjson")

    async def health_check(request: Request):
        return JSONResponse({"status": "healthy"})

    middleware = [
        Middleware(
            CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
        )
    ]

    return Starlette(
        routes=[
            Route("/send-message", send_message_endpoint, methods=["POST"]),
            Route("/send-message/stream", stream_message_endpoint, methods=["POST"]),
            Route("/health", health_check, methods=["GET"]),
        ],
        middleware=middleware,
        lifespan=lifespan,
    )


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
