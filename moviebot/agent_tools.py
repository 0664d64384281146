# each tool is one lookup against the movie database. The set is closed:
# ToolName is the only list of tools, the parameter models and the
# definitions sent to the model are both keyed on it.
import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from structlog import get_logger
from .config import Config
from .conversation import ConversationStore
from .models import (
    Done,
    Fragment,
    FragmentKind,
    InProgress,
    LookupStep,
    Message,
    MovieListing,
    Role,
    ToolName,
)
from .movie_api import MovieDatabaseClient

logger = get_logger("agent-tools")

Number = Union[int, float]


class InvalidToolCall(ValueError):
    """The model asked for a tool that does not exist or sent bad arguments."""


class ImdbLookup(BaseModel):
    model_config = ConfigDict(extra="forbid")

    imdbId: str = Field(description="The IMDb ID of the movie. e.g. tt1375666.")


class TitleSearch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(
        description="The title or part of the title of the movie. e.g. Inception."
    )


class FilterCriteria(BaseModel):
    model_config = ConfigDict(extra="forbid")

    MinRating: Optional[Number] = Field(None, description="The minimum rating of the movies.")
    MaxRating: Optional[Number] = Field(None, description="The maximum rating of the movies.")
    MinYear: Optional[Number] = Field(None, description="The minimum release year of the movies.")
    MaxYear: Optional[Number] = Field(None, description="The maximum release year of the movies.")
    MinRevenue: Optional[Number] = Field(None, description="The minimum revenue of the movies.")
    MaxRevenue: Optional[Number] = Field(None, description="The maximum revenue of the movies.")
    Genre: Optional[str] = Field(None, description="The genre of the movies.")
    MinRuntime: Optional[Number] = Field(None, description="The minimum runtime of the movies.")
    MaxRuntime: Optional[Number] = Field(None, description="The maximum runtime of the movies.")
    OriginalLanguage: Optional[str] = Field(
        None, description="The original language of the movies."
    )
    SpokenLanguage: Optional[str] = Field(None, description="The spoken language of the movies.")
    Limit: Optional[Number] = Field(None, description="The maximum number of results to return.")

    def query(self) -> Dict[str, Any]:
        # 7.0 goes out as "7"
        return {
            key: int(value) if isinstance(value, float) and value.is_integer() else value
            for key, value in self.model_dump(exclude_none=True).items()
        }


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    parameters_model: Type[BaseModel]

    def definition(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "name": self.name.value,
            "description": self.description,
            "parameters": self.parameters_model.model_json_schema(),
        }


TOOLS: Dict[ToolName, ToolSpec] = {
    ToolName.GET_MOVIE_INFO: ToolSpec(
        ToolName.GET_MOVIE_INFO,
        "Get information about a given movie. Use this to show the information to the user.",
        ImdbLookup,
    ),
    ToolName.GET_MOVIE_CAST: ToolSpec(
        ToolName.GET_MOVIE_CAST,
        "Get the cast of a given movie. Use this to show the cast to the user.",
        ImdbLookup,
    ),
    ToolName.SEARCH_MOVIE_TITLE: ToolSpec(
        ToolName.SEARCH_MOVIE_TITLE,
        "Search for movies by title. Use this to show a list of matching movies to the user.",
        TitleSearch,
    ),
    ToolName.FILTER_MOVIES: ToolSpec(
        ToolName.FILTER_MOVIES,
        "Filter movies by criteria. Use this to show a list of matching movies to the user.",
        FilterCriteria,
    ),
}


def _notice(kind: FragmentKind, text: str) -> Fragment:
    return Fragment(kind=kind, paragraphs=[text])


def _format_number(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:g}"


class AgentTools:
    def __init__(self, config: Config, movie_api: MovieDatabaseClient):
        self.config = config
        self.movie_api = movie_api
        self._executors = {
            ToolName.GET_MOVIE_INFO: self._get_movie_info,
            ToolName.GET_MOVIE_CAST: self._get_movie_cast,
            ToolName.SEARCH_MOVIE_TITLE: self._search_movie_title,
            ToolName.FILTER_MOVIES: self._filter_movies,
        }

    def get_tools(self) -> List[Dict[str, Any]]:
        return [spec.definition() for spec in TOOLS.values()]

    def validate(
        self, name: str, arguments: Union[str, Dict[str, Any]]
    ) -> Tuple[ToolName, BaseModel]:
        try:
            tool_name = ToolName(name)
        except ValueError:
            raise InvalidToolCall(f"Unknown tool '{name}'") from None
        try:
            if isinstance(arguments, str):
                params = TOOLS[tool_name].parameters_model.model_validate_json(
                    arguments or "{}"
                )
            else:
                params = TOOLS[tool_name].parameters_model.model_validate(arguments)
        except ValidationError as e:
            logger.error("InvalidToolArguments", tool=name, arguments=arguments)
            raise InvalidToolCall(f"Invalid arguments for '{name}': {e}") from e
        return tool_name, params

    def generate(
        self, name: ToolName, params: BaseModel, store: ConversationStore
    ) -> AsyncIterator[LookupStep]:
        if not isinstance(params, TOOLS[name].parameters_model):
            raise InvalidToolCall(f"'{name.value}' expects {TOOLS[name].parameters_model.__name__}")
        return self._executors[name](params, store)

    async def _finish(
        self, store: ConversationStore, name: ToolName, summary: str, fragment: Fragment
    ) -> Done:
        await asyncio.sleep(self.config.ui_delay_seconds)
        message = Message(role=Role.ASSISTANT, name=name, content=summary)
        store.done(message)
        logger.info("MovieLookupCompleted", tool=name.value, summary=summary)
        return Done(fragment=fragment, summary=message)

    def _failed(self, name: ToolName, text: str) -> Done:
        # nothing is committed: the turn keeps only the user message
        logger.warning("MovieLookupFailed", tool=name.value)
        return Done(fragment=_notice(FragmentKind.NOT_FOUND, text))

    async def _get_movie_info(
        self, params: ImdbLookup, store: ConversationStore
    ) -> AsyncIterator[LookupStep]:
        yield InProgress(fragment=_notice(FragmentKind.LOADING, "Loading movie information..."))

        movie = await self.movie_api.find_by_imdb_id(params.imdbId)
        if movie is None:
            yield self._failed(ToolName.GET_MOVIE_INFO, "Movie not found!")
            return

        paragraphs = [movie.overview] if movie.overview else []
        paragraphs += [
            f"Release Date: {movie.release_date}",
            f"Rating: {_format_number(movie.vote_average)}",
        ]
        fragment = Fragment(
            kind=FragmentKind.MOVIE_INFO, heading=movie.title, paragraphs=paragraphs
        )
        yield await self._finish(
            store, ToolName.GET_MOVIE_INFO, f"[Information about {movie.title}]", fragment
        )

    async def _get_movie_cast(
        self, params: ImdbLookup, store: ConversationStore
    ) -> AsyncIterator[LookupStep]:
        yield InProgress(fragment=_notice(FragmentKind.LOADING, "Loading movie cast..."))

        movie = await self.movie_api.find_by_imdb_id(params.imdbId)
        if movie is None:
            yield self._failed(ToolName.GET_MOVIE_CAST, "Cast not found!")
            return

        fragment = Fragment(
            kind=FragmentKind.MOVIE_CAST,
            heading=f"Cast of {movie.title}",
            paragraphs=[", ".join(movie.cast)],
        )
        yield await self._finish(
            store, ToolName.GET_MOVIE_CAST, f"[Cast of {movie.title}]", fragment
        )

    async def _search_movie_title(
        self, params: TitleSearch, store: ConversationStore
    ) -> AsyncIterator[LookupStep]:
        yield InProgress(fragment=_notice(FragmentKind.LOADING, "Searching for movies..."))

        movies = await self.movie_api.search_title(params.title)
        if movies is None:
            yield self._failed(ToolName.SEARCH_MOVIE_TITLE, "No movies found!")
            return

        fragment = Fragment(
            kind=FragmentKind.TITLE_LIST,
            heading=f'Movies matching "{params.title}"',
            items=[movie.title for movie in movies],
        )
        yield await self._finish(
            store,
            ToolName.SEARCH_MOVIE_TITLE,
            f'[Movies matching "{params.title}"]',
            fragment,
        )

    async def _filter_movies(
        self, params: FilterCriteria, store: ConversationStore
    ) -> AsyncIterator[LookupStep]:
        yield InProgress(fragment=_notice(FragmentKind.LOADING, "Filtering movies..."))

        movies = await self.movie_api.filter_movies(params.query())
        if movies is None:
            yield self._failed(
                ToolName.FILTER_MOVIES, "No movies found with the specified criteria!"
            )
            return

        fragment = Fragment(
            kind=FragmentKind.FILTER_LIST,
            heading="Movies matching criteria",
            items=[_listing_with_year(movie) for movie in movies],
        )
        yield await self._finish(
            store, ToolName.FILTER_MOVIES, "[Movies matching criteria]", fragment
        )


def _listing_with_year(movie: MovieListing) -> str:
    return f"{movie.title} ({movie.year})" if movie.year is not None else movie.title
