from typing import Any, Dict, List, Optional
from urllib.parse import quote
import httpx
from pydantic import TypeAdapter
from structlog import get_logger
from .config import Config
from .models import MovieListing, MovieRecord

logger = get_logger("movie-api")

_LISTINGS = TypeAdapter(List[MovieListing])
_RECORDS = TypeAdapter(List[MovieRecord])


class MovieDatabaseClient:
    """Thin async client for the RapidAPI movie database.

    Every lookup returns ``None`` when the provider answers with a
    non-success status. Transport errors and timeouts are raised.
    """

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = http_client or httpx.AsyncClient(
            base_url=config.movie_api_url,
            timeout=config.request_timeout_seconds,
        )
        self._headers = {
            "x-rapidapi-host": config.rapidapi_host,
            "x-rapidapi-key": config.rapidapi_key,
        }

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None):
        response = await self._client.get(path, params=params, headers=self._headers)
        if not response.is_success:
            logger.warning(
                "MovieApiRequestFailed", path=path, status_code=response.status_code
            )
            return None
        return response.json()

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[MovieRecord]:
        # "Imbd" is how the provider spells it
        body = await self._get(f"/FindByImbdId/{quote(imdb_id, safe='')}")
        if not body:
            return None
        movie = _RECORDS.validate_python(body)[0]
        logger.info("FetchedMovie", imdb_id=imdb_id, title=movie.title)
        return movie

    async def search_title(self, title: str) -> Optional[List[MovieListing]]:
        body = await self._get(f"/Search/{quote(title, safe='')}")
        if body is None:
            return None
        movies = _LISTINGS.validate_python(body)
        logger.info("SearchedTitle", title=title, n_results=len(movies))
        return movies

    async def filter_movies(self, criteria: Dict[str, Any]) -> Optional[List[MovieListing]]:
        params = {key: value for key, value in criteria.items() if value is not None}
        body = await self._get("/Filter", params=params)
        if body is None:
            return None
        movies = _LISTINGS.validate_python(body)
        logger.info("FilteredMovies", criteria=params, n_results=len(movies))
        return movies
