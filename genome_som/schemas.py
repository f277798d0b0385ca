"""
Request and response payloads of the movie and tag search engines
"""

from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from .config import MatchingMethod


class PrioritizedTag(BaseModel):
    """A tag name with the weight it carries in a movie search"""

    tag: str
    priority: float = 1.0


class MovieSearchRequest(BaseModel):
    """Weighted tags to search movies for"""

    model_config = ConfigDict(frozen=True)

    tags: List[PrioritizedTag] = Field(default_factory=list)
    threshold: Optional[float] = None
    count: Optional[int] = Field(default=None, ge=0)


class MovieRecord(BaseModel):
    """Display record of a movie"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str
    imdb_id: str = Field(default="", alias="imdbID")
    tmdb_id: str = Field(default="", alias="tmdbID")


class MovieSearchResponse(BaseModel):
    request: MovieSearchRequest
    movies: List[MovieRecord]


class TagSimilarityRequest(BaseModel):
    """Tags to find enclosed or similar tags for"""

    model_config = ConfigDict(frozen=True)

    tags: List[str] = Field(default_factory=list)
    method: MatchingMethod
    threshold: Optional[float] = None
    count: Optional[int] = Field(default=None, ge=0)


class MatchedTag(BaseModel):
    tag: str
    score: float


class TagSimilarityResponse(BaseModel):
    request: TagSimilarityRequest
    matches: List[MatchedTag]
