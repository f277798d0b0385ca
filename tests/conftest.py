"""
Pytest configuration and fixtures for genome SOM tests
"""

import pytest
import numpy as np
from genome_som import (
    DistanceFunction,
    MovieRecord,
    MovieSearchIndex,
    SelfOrganizingMap,
    TagSearchIndex,
    TrainingConfig,
)


@pytest.fixture
def sample_data():
    """Generate sample 3D data for testing"""
    rng = np.random.default_rng(42)
    return rng.random((50, 3))


@pytest.fixture
def small_data():
    """Generate small dataset for quick tests"""
    rng = np.random.default_rng(42)
    return rng.random((10, 2))


@pytest.fixture
def basic_config():
    """Basic training configuration for testing"""
    return TrainingConfig(dimension_sizes=(5, 5), epochs=20, seed=42)


@pytest.fixture
def small_som():
    """Random 3x3 hexagonal map with three features"""
    return SelfOrganizingMap.random((3, 3), 3, rng=42)


@pytest.fixture
def trained_som(basic_config, sample_data):
    """Pre-trained map for testing"""
    som = SelfOrganizingMap.from_config(basic_config, sample_data.shape[1])
    som.fit(sample_data, basic_config)
    return som


@pytest.fixture
def all_distance_functions():
    """All lattice distance functions for testing"""
    return [
        DistanceFunction.EUCLIDEAN,
        DistanceFunction.MANHATTAN,
        DistanceFunction.HEXAGONAL,
    ]


@pytest.fixture
def two_node_som():
    """2x1 map whose nodes favour tag `a` and tag `b` respectively"""
    return SelfOrganizingMap(np.array([[0.9, 0.1], [0.2, 0.8]]), (2, 1))


@pytest.fixture
def two_node_tags():
    return {"a": 0, "b": 1}


@pytest.fixture
def two_node_movie_index(two_node_som, two_node_tags):
    """Movie 1 maps to node 0 and movie 2 to node 1"""
    vectors = {1: np.array([0.9, 0.1]), 2: np.array([0.2, 0.8])}
    movies = {
        1: MovieRecord(id=1, title="Alpha (1999)", imdb_id="0000001", tmdb_id="11"),
        2: MovieRecord(id=2, title="Beta (2001)", imdb_id="0000002", tmdb_id="22"),
    }
    return MovieSearchIndex.build(two_node_som, vectors, two_node_tags, movies=movies)


@pytest.fixture
def plane_som():
    """2x2 map with four hand-made tag component planes

    Plane `b` exceeds `a` by 0.1 on every node, plane `c` is half of `a` and
    plane `d` is unrelated to all of them.
    """
    nodes = np.array(
        [
            [0.2, 0.3, 0.1, 0.9],
            [0.4, 0.5, 0.2, 0.1],
            [0.6, 0.7, 0.3, 0.8],
            [0.8, 0.9, 0.4, 0.2],
        ]
    )
    return SelfOrganizingMap(nodes, (2, 2))


@pytest.fixture
def plane_tag_index(plane_som):
    return TagSearchIndex(plane_som, {"a": 0, "b": 1, "c": 2, "d": 3})


@pytest.fixture
def genome_files(tmp_path):
    """Map, tag, movie, link and vector files of the two-node example"""
    map_path = tmp_path / "map.csv"
    map_path.write_text("2,1\n0.9,0.1\n0.2,0.8\n")

    tags_path = tmp_path / "tags.csv"
    tags_path.write_text("tagId,tag\n1,a\n2,b\n")

    movies_path = tmp_path / "movies.csv"
    movies_path.write_text(
        "movieId,title,genres\n"
        "1,Alpha (1999),Comedy|Drama\n"
        '2,"Beta, The (2001)",Horror\n'
        "3,Gamma (2005),(no genres listed)\n"
    )

    links_path = tmp_path / "links.csv"
    links_path.write_text("movieId,imdbId,tmdbId\n1,0000001,11\n2,0000002,\n")

    vectors_path = tmp_path / "vectors.csv"
    vectors_path.write_text("1,0.9,0.1\n2,0.2,0.8\n")

    scores_path = tmp_path / "scores.csv"
    scores_path.write_text(
        "movieId,tagId,relevance\n"
        "2,1,0.2\n"
        "2,2,0.8\n"
        "1,1,0.9\n"
        "1,2,0.1\n"
    )

    return {
        "map": str(map_path),
        "tags": str(tags_path),
        "movies": str(movies_path),
        "links": str(links_path),
        "vectors": str(vectors_path),
        "scores": str(scores_path),
    }
