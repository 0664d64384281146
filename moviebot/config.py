from enum import Enum
from typing import Optional
from pydantic import BaseModel
import os
from dotenv import load_dotenv

load_dotenv()

OPEN_AI_KEY = os.getenv("OPEN_AI_KEY")
RAPIDAPI_KEY = os.getenv("RAPIDAPI_KEY")
RAPIDAPI_HOST = os.getenv("RAPIDAPI_HOST", "moviedatabase8.p.rapidapi.com")
MOVIE_API_BASE_URL = os.getenv("MOVIE_API_BASE_URL")
GENERATIVE_MODEL_ID = os.getenv("GENERATIVE_MODEL_ID", "gpt-3.5-turbo")
TOOL_CHOICE = os.getenv("TOOL_CHOICE", "auto")
REQUEST_TIMEOUT_SECONDS = os.getenv("REQUEST_TIMEOUT_SECONDS", "30")
UI_DELAY_SECONDS = os.getenv("UI_DELAY_SECONDS", "1.0")


class ToolChoice(str, Enum):
    AUTO = "auto"
    REQUIRED = "required"
    NONE = "none"


class Config(BaseModel):
    open_ai_key: str
    rapidapi_key: str
    rapidapi_host: str = "moviedatabase8.p.rapidapi.com"
    movie_api_base_url: Optional[str] = None
    generative_model_id: str = "gpt-3.5-turbo"
    temperature: float = 0.0
    tool_choice: ToolChoice = ToolChoice.AUTO
    request_timeout_seconds: float = 30.0
    # pacing for the UI, not a rate limit
    ui_delay_seconds: float = 1.0

    @property
    def movie_api_url(self) -> str:
        return self.movie_api_base_url or f"https://{self.rapidapi_host}"


def get_config() -> Config:
    return Config(
        open_ai_key=OPEN_AI_KEY,
        rapidapi_key=RAPIDAPI_KEY,
        rapidapi_host=RAPIDAPI_HOST,
        movie_api_base_url=MOVIE_API_BASE_URL,
        generative_model_id=GENERATIVE_MODEL_ID,
        tool_choice=TOOL_CHOICE,
        request_timeout_seconds=REQUEST_TIMEOUT_SECONDS,
        ui_delay_seconds=UI_DELAY_SECONDS,
    )
