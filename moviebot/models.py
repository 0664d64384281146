from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
import time
import uuid
from uuid import UUID


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ToolName(str, Enum):
    GET_MOVIE_INFO = "get_movie_info"
    GET_MOVIE_CAST = "get_movie_cast"
    SEARCH_MOVIE_TITLE = "search_movie_title"
    FILTER_MOVIES = "filter_movies"


class Message(BaseModel):
    """A single entry of the model-facing conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    name: Optional[ToolName] = None
    id: Optional[int] = None

    def to_oracle(self) -> Dict[str, str]:
        # the tool name is carried by the bracket notation in content
        return {"role": self.role.value, "content": self.content}


class FragmentKind(str, Enum):
    LOADING = "loading"
    TEXT = "text"
    MOVIE_INFO = "movie_info"
    MOVIE_CAST = "movie_cast"
    TITLE_LIST = "title_list"
    FILTER_LIST = "filter_list"
    NOT_FOUND = "not_found"


class Fragment(BaseModel):
    """A renderable piece of UI produced while a turn is processed."""

    kind: FragmentKind
    heading: Optional[str] = None
    paragraphs: List[str] = Field(default_factory=list)
    items: List[str] = Field(default_factory=list)

    def to_markdown(self) -> str:
        blocks = []
        if self.heading:
            blocks.append(f"### {self.heading}")
        blocks.extend(self.paragraphs)
        if self.items:
            blocks.append("\n".join(f"- {item}" for item in self.items))
        return "\n\n".join(blocks)


class InvocationStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


class ToolInvocation(BaseModel):
    tool_name: ToolName
    parameters: Dict[str, Any]
    status: InvocationStatus = InvocationStatus.IN_PROGRESS
    result: Optional[Fragment] = None


def _timestamp_id() -> int:
    return int(time.time() * 1000)


class DisplayRecord(BaseModel):
    """The caller-facing rendering of one turn."""

    id: int = Field(default_factory=_timestamp_id)
    role: Literal["user", "assistant"]
    display: Fragment
    tool_invocation: Optional[ToolInvocation] = None


class InProgress(BaseModel):
    fragment: Fragment


class Done(BaseModel):
    fragment: Fragment
    # None when the lookup failed and nothing was committed
    summary: Optional[Message] = None

    @property
    def succeeded(self) -> bool:
        return self.summary is not None


LookupStep = Union[InProgress, Done]


class MovieRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(validation_alias=AliasChoices("title", "Title"))
    overview: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: Optional[float] = None
    actors: str = Field("", validation_alias=AliasChoices("actors", "Actors"))
    year: Optional[Union[int, str]] = Field(
        None, validation_alias=AliasChoices("year", "Year")
    )
    imdb_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("imdb_id", "imdbID", "imdbId")
    )

    @property
    def cast(self) -> List[str]:
        return [name.strip() for name in self.actors.split(", ") if name.strip()]


class MovieListing(BaseModel):
    """An entry of a search or filter result.

    Search results identify movies with ``id`` while filter results use
    ``imdbID``; both land in ``key``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: Optional[Union[str, int]] = Field(
        None, validation_alias=AliasChoices("key", "id", "imdbID")
    )
    title: str = Field(validation_alias=AliasChoices("title", "Title"))
    year: Optional[Union[int, str]] = Field(
        None, validation_alias=AliasChoices("year", "Year")
    )


class MovieBotRequest(BaseModel):
    user_input: str = Field(min_length=1)
    request_id: UUID = Field(default_factory=uuid.uuid4)
    conversation_id: UUID = Field(default_factory=uuid.uuid4)

    @field_validator("user_input")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("user_input must not be blank")
        return value


class MovieBotResponse(BaseModel):
    id: int
    role: Literal["user", "assistant"]
    display: str
    conversation_id: UUID
    tool_name: Optional[ToolName] = None

    @classmethod
    def from_record(cls, record: DisplayRecord, conversation_id: UUID):
        invocation = record.tool_invocation
        return cls(
            id=record.id,
            role=record.role,
            display=record.display.to_markdown(),
            conversation_id=conversation_id,
            tool_name=invocation.tool_name if invocation else None,
        )
