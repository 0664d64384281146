import pytest
from pydantic import ValidationError

from moviebot.config import Config, ToolChoice


def test_environment_strings_are_coerced():
    config = Config(
        open_ai_key="sk-test",
        rapidapi_key="rapid-test",
        tool_choice="required",
        request_timeout_seconds="10",
        ui_delay_seconds="0.5",
    )

    assert config.tool_choice is ToolChoice.REQUIRED
    assert config.request_timeout_seconds == 10.0
    assert config.temperature == 0.0
    assert config.movie_api_url == "https://moviedatabase8.p.rapidapi.com"


def test_missing_credentials_are_rejected():
    with pytest.raises(ValidationError):
        Config(open_ai_key=None, rapidapi_key="rapid-test")
