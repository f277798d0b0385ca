"""
FastAPI web service for genome SOM movie and tag search with observability
"""

import json
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Type, TypeVar

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from genome_som import (
    DistanceFunction,
    MovieSearchEngine,
    MovieSearchIndex,
    MovieSearchRequest,
    MovieSearchResponse,
    SelfOrganizingMap,
    TagSearchEngine,
    TagSearchIndex,
    TagSimilarityRequest,
    TagSimilarityResponse,
    get_health_status,
    get_metrics,
    setup_logging,
    trace_operation,
    RequestTracingMiddleware,
)
from genome_som.io import load_movie_records, parse_tags, parse_vectors, tag_components
from genome_som.observability import log_request_metrics, CONTENT_TYPE_LATEST

RequestModel = TypeVar("RequestModel", bound=BaseModel)

# Engines are built once at startup and only read afterwards
search_engines: Dict[str, Any] = {}

# Initialize observability
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
)

logger = structlog.get_logger()


def load_engines(
    map_path: str,
    tags_path: str,
    movies_path: Optional[str] = None,
    vectors_path: Optional[str] = None,
    links_path: Optional[str] = None,
    distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
) -> Dict[str, Any]:
    """
    Load a trained map and build the search engines served by the API

    The tag engine only needs the map and the tag file; the movie engine is
    built when both a movie file and a movie vector file are given.
    """
    with trace_operation("load_engines", map_path=map_path):
        som = SelfOrganizingMap.load(map_path, distance_function)
        tags = tag_components(parse_tags(tags_path))

        engines: Dict[str, Any] = {"tags": TagSearchEngine(TagSearchIndex(som, tags))}
        if movies_path and vectors_path:
            index = MovieSearchIndex.build(
                som,
                parse_vectors(vectors_path),
                tags,
                movies=load_movie_records(movies_path, links_path),
            )
            engines["movies"] = MovieSearchEngine(index)

    search_engines.clear()
    search_engines.update(engines)
    return engines


@asynccontextmanager
async def lifespan(app: FastAPI):
    map_path = os.getenv("GENOME_SOM_MAP")
    tags_path = os.getenv("GENOME_SOM_TAGS")
    if map_path and tags_path:
        load_engines(
            map_path,
            tags_path,
            movies_path=os.getenv("GENOME_SOM_MOVIES"),
            vectors_path=os.getenv("GENOME_SOM_VECTORS"),
            links_path=os.getenv("GENOME_SOM_LINKS"),
            distance_function=DistanceFunction(
                os.getenv("GENOME_SOM_DISTANCE", DistanceFunction.HEXAGONAL.value)
            ),
        )
    else:
        logger.warning("No map configured, search endpoints will return 503")
    yield


# FastAPI app
app = FastAPI(
    title="Genome SOM API",
    description="Movie and tag search over a self-organizing map of the tag genome",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Add observability middleware
class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        correlation_id = request.scope.get("correlation_id", "unknown")
        request.state.correlation_id = correlation_id

        response = await call_next(request)

        duration = time.time() - start_time
        # Label by route template so each distinct GET query shares one series
        endpoint = getattr(request.scope.get("route"), "path", "unmatched")
        log_request_metrics(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
            duration=duration,
        )

        logger.info(
            "HTTP request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            duration_seconds=duration,
            correlation_id=correlation_id,
        )

        return response


app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestTracingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_request_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as bad requests"""
    return JSONResponse(
        status_code=400,
        content={"detail": f"Invalid query: {exc.errors()}"},
    )


def _engine(kind: str):
    engine = search_engines.get(kind)
    if engine is None:
        raise HTTPException(status_code=503, detail=f"No {kind} index loaded")
    return engine


def _parse_query(model: Type[RequestModel], query: str) -> RequestModel:
    """Parse a JSON encoded query from the request path"""
    try:
        return model.model_validate(json.loads(query))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid query: {e}")


def _find_movies(request: MovieSearchRequest) -> MovieSearchResponse:
    engine = _engine("movies")
    with trace_operation("movie_search", tags=len(request.tags)):
        return engine.find_movies(request)


def _similar_tags(request: TagSimilarityRequest) -> TagSimilarityResponse:
    engine = _engine("tags")
    with trace_operation(
        "tag_search", tags=len(request.tags), method=request.method.value
    ):
        return engine.similar_tags(request)


@app.get("/", response_model=Dict[str, str])
def root():
    """Root endpoint"""
    return {"message": "Genome SOM API", "version": "0.1.0", "docs": "/docs"}


@app.get("/health")
def health_check():
    """Health check with system status and loaded engines"""
    health_status = get_health_status(search_engines)
    health_status["engines_loaded"] = sorted(search_engines)
    health_status["version"] = "0.1.0"

    logger.info("Health check requested", status=health_status["status"])
    return health_status


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    logger.debug("Metrics requested")
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


@app.get("/movies/{query:path}", response_model=MovieSearchResponse)
def find_movies_get(query: str):
    """Movies for a URL encoded JSON movie search request"""
    _engine("movies")
    return _find_movies(_parse_query(MovieSearchRequest, query))


@app.post("/movies", response_model=MovieSearchResponse)
def find_movies_post(request: MovieSearchRequest):
    """Movies for a JSON movie search request body"""
    return _find_movies(request)


@app.get("/tags/{query:path}", response_model=TagSimilarityResponse)
def similar_tags_get(query: str):
    """Tags for a URL encoded JSON tag similarity request"""
    _engine("tags")
    return _similar_tags(_parse_query(TagSimilarityRequest, query))


@app.post("/tags", response_model=TagSimilarityResponse)
def similar_tags_post(request: TagSimilarityRequest):
    """Tags for a JSON tag similarity request body"""
    return _similar_tags(request)


def main():
    """Run the FastAPI server"""
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("api:app", host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    main()
