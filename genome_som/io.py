"""
Readers and writers for maps and MovieLens genome data files
"""

import csv
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import structlog

from .exceptions import MalformedInput
from .schemas import MovieRecord

logger = structlog.get_logger(__name__)

EntityKey = Union[int, str]

NO_GENRES = "(no genres listed)"

_PARSE_ERRORS = (
    pd.errors.ParserError,
    pd.errors.EmptyDataError,
    ValueError,
    KeyError,
    IndexError,
    TypeError,
)


def _existing(path: Union[str, Path]) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return path


def _parse_dimension_sizes(line: str, path: Path) -> Tuple[int, ...]:
    try:
        return tuple(int(value) for value in line.strip().split(",") if value.strip())
    except ValueError as e:
        raise MalformedInput(f"invalid dimension sizes {line.strip()!r}", str(path)) from e


def read_map(path: Union[str, Path]) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """Read a persisted map.

    The first line holds the comma separated lattice dimension sizes, every
    following line one node vector in row-major node order.

    Returns:
        Tuple of (nodes, dimension_sizes)
    """
    path = _existing(path)

    with open(path, "r") as f:
        header = f.readline()
    if not header.strip():
        raise MalformedInput("missing dimension sizes", str(path))
    dimension_sizes = _parse_dimension_sizes(header, path)

    try:
        frame = pd.read_csv(
            path,
            skiprows=1,
            header=None,
            skip_blank_lines=True,
            dtype=np.float64,
            float_precision="round_trip",
        )
    except pd.errors.EmptyDataError:
        return np.zeros((0, 0), dtype=np.float64), dimension_sizes
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid node data: {e}", str(path)) from e

    # Lines written with a trailing separator produce an empty last column
    frame = frame.dropna(axis=1, how="all")
    if frame.isna().to_numpy().any():
        raise MalformedInput("nodes have inconsistent lengths", str(path))

    return frame.to_numpy(dtype=np.float64), dimension_sizes


def write_map(
    nodes: np.ndarray, dimension_sizes: Sequence[int], path: Union[str, Path]
) -> None:
    """Write a map in the format understood by `read_map`"""
    try:
        with open(path, "w") as f:
            f.write(",".join(str(int(size)) for size in dimension_sizes))
            f.write("\n")
            np.savetxt(f, np.asarray(nodes), delimiter=",", fmt="%.17g")
    except (IOError, OSError) as e:
        raise IOError(f"Failed to save map to {path}: {e}")


def parse_tags(path: Union[str, Path]) -> Dict[int, str]:
    """Parse a genome tag file of `id,name` rows below a header line.

    Ids must be unique and form the contiguous range starting at 1.
    """
    path = _existing(path)
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        if frame.shape[1] < 2:
            raise MalformedInput("expected at least two columns: ID,NAME", str(path))
        ids = frame.iloc[:, 0].astype(int)
        names = frame.iloc[:, 1]
    except MalformedInput:
        raise
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid tag file: {e}", str(path)) from e

    tags = dict(zip(ids.tolist(), names.tolist()))
    if sorted(tags) != list(range(1, len(ids) + 1)):
        raise MalformedInput("tag ids must be unique and contiguous from 1", str(path))
    return tags


def tag_components(tags: Mapping[int, str]) -> Dict[str, int]:
    """Map tag names to the zero-based vector component of their tag id"""
    return {name: tag_id - 1 for tag_id, name in tags.items()}


def _read_movie_frame(path: Path) -> pd.DataFrame:
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        if frame.shape[1] < 3:
            raise MalformedInput(
                "expected at least three columns: ID,TITLE,GENRES", str(path)
            )
        frame = frame.iloc[:, :3].copy()
        frame.columns = ["id", "title", "genres"]
        frame["id"] = frame["id"].astype(int)
    except MalformedInput:
        raise
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid movie file: {e}", str(path)) from e
    return frame


def parse_movies(path: Union[str, Path]) -> Dict[int, str]:
    """Parse a `movieId,title,genres` file into movie titles by id"""
    frame = _read_movie_frame(_existing(path))
    return dict(zip(frame["id"].tolist(), frame["title"].tolist()))


def parse_links(path: Union[str, Path]) -> Dict[int, Tuple[str, str]]:
    """Parse a `movieId,imdbId,tmdbId` file.

    External ids stay strings: IMDb ids carry leading zeros and TMDb ids
    may be missing.
    """
    path = _existing(path)
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        if frame.shape[1] < 3:
            raise MalformedInput(
                "expected at least three columns: ID,IMDBID,TMDBID", str(path)
            )
        ids = frame.iloc[:, 0].astype(int).tolist()
        imdb = frame.iloc[:, 1].str.strip().tolist()
        tmdb = frame.iloc[:, 2].str.strip().tolist()
    except MalformedInput:
        raise
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid links file: {e}", str(path)) from e
    return {movie_id: (i, t) for movie_id, i, t in zip(ids, imdb, tmdb)}


def load_movie_records(
    movies_path: Union[str, Path], links_path: Union[str, Path, None] = None
) -> Dict[int, MovieRecord]:
    """Join movie titles with their external ids"""
    titles = parse_movies(movies_path)
    links = parse_links(links_path) if links_path is not None else {}

    records = {}
    for movie_id, title in titles.items():
        imdb_id, tmdb_id = links.get(movie_id, ("", ""))
        records[movie_id] = MovieRecord(
            id=movie_id, title=title, imdb_id=imdb_id, tmdb_id=tmdb_id
        )
    return records


def parse_scores(path: Union[str, Path]) -> pd.DataFrame:
    """Parse a `movieId,tagId,relevance` file.

    Returns:
        DataFrame with columns `movie`, `tag` and `score`
    """
    path = _existing(path)
    try:
        frame = pd.read_csv(path)
        if frame.shape[1] < 3:
            raise MalformedInput(
                "expected at least three columns: ID,TAGID,SCORE", str(path)
            )
        frame = frame.iloc[:, :3].copy()
        frame.columns = ["movie", "tag", "score"]
        frame = frame.astype({"movie": int, "tag": int, "score": np.float64})
    except MalformedInput:
        raise
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid scores file: {e}", str(path)) from e
    return frame


def generate_score_matrix(scores: pd.DataFrame) -> List[Tuple[int, np.ndarray]]:
    """Group (movie, tag, score) rows into one tag vector per movie.

    Every movie must carry a score for every tag id from 1 to the largest
    tag id. Movies are returned in ascending id order.
    """
    if scores.empty:
        return []
    if scores.duplicated(subset=["movie", "tag"]).any():
        raise MalformedInput("duplicate movie/tag score")

    matrix = scores.pivot(index="movie", columns="tag", values="score").sort_index()
    expected_tags = list(range(1, int(matrix.columns.max()) + 1))
    if sorted(matrix.columns.tolist()) != expected_tags:
        raise MalformedInput("tag ids must be contiguous from 1")
    matrix = matrix[expected_tags]
    if matrix.isna().to_numpy().any():
        missing = matrix.index[matrix.isna().any(axis=1)].tolist()
        raise MalformedInput(f"movies without a score for every tag: {missing[:10]}")

    logger.debug("Score matrix generated", movies=len(matrix), tags=len(expected_tags))
    return [
        (int(movie_id), row.to_numpy(dtype=np.float64))
        for movie_id, row in matrix.iterrows()
    ]


def genre_vectors(path: Union[str, Path]) -> Tuple[List[str], Dict[int, np.ndarray]]:
    """Build one-hot genre vectors from a `movieId,title,genres` file.

    Genres are `|` separated and sorted alphabetically; movies without any
    genre are left out.

    Returns:
        Tuple of (genre names, vectors by movie id)
    """
    frame = _read_movie_frame(_existing(path))
    movie_genres = [
        set(g for g in genres.split("|") if g and g != NO_GENRES)
        for genres in frame["genres"].tolist()
    ]
    names = sorted(set().union(*movie_genres)) if movie_genres else []
    positions = {name: i for i, name in enumerate(names)}

    vectors = {}
    for movie_id, genres in zip(frame["id"].tolist(), movie_genres):
        if not genres:
            continue
        vector = np.zeros(len(names), dtype=np.float64)
        vector[[positions[g] for g in genres]] = 1.0
        vectors[movie_id] = vector
    return names, vectors


def parse_vectors(path: Union[str, Path]) -> Dict[EntityKey, np.ndarray]:
    """Parse an entity vector file without header.

    Each line is `id,v1,...,vN` or `"title",v1,...,vN`. Integer keys are
    returned as int, anything else as str. Insertion order follows the file.
    """
    path = _existing(path)
    try:
        frame = pd.read_csv(
            path, header=None, skip_blank_lines=True, float_precision="round_trip"
        )
    except pd.errors.EmptyDataError:
        return {}
    except _PARSE_ERRORS as e:
        raise MalformedInput(f"invalid vector file: {e}", str(path)) from e

    frame = frame.dropna(axis=1, how="all")
    if frame.shape[1] < 2:
        raise MalformedInput("expected an id followed by vector components", str(path))

    keys = frame.iloc[:, 0]
    try:
        values = frame.iloc[:, 1:].to_numpy(dtype=np.float64)
    except ValueError as e:
        raise MalformedInput(f"non-numeric vector component: {e}", str(path)) from e
    if np.isnan(values).any():
        raise MalformedInput("vectors have inconsistent lengths", str(path))

    if pd.api.types.is_integer_dtype(keys):
        keys = [int(key) for key in keys]
    else:
        keys = [str(key) for key in keys]

    if len(set(keys)) != len(keys):
        raise MalformedInput("duplicate entity id", str(path))

    logger.debug("Vectors parsed", path=str(path), entities=len(keys))
    return dict(zip(keys, values))


def write_vectors(
    vectors: Union[Mapping[EntityKey, np.ndarray], Sequence[Tuple[EntityKey, np.ndarray]]],
    path: Union[str, Path],
) -> None:
    """Write entity vectors in the format understood by `parse_vectors`"""
    items = vectors.items() if isinstance(vectors, Mapping) else vectors
    try:
        with open(path, "w", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
            for key, vector in items:
                key = key if isinstance(key, (int, np.integer)) else str(key)
                writer.writerow([key] + [repr(float(v)) for v in vector])
    except (IOError, OSError) as e:
        raise IOError(f"Failed to write vectors to {path}: {e}")
