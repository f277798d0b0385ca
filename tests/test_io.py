"""
Tests for map and genome file readers and writers
"""

import pytest
import numpy as np
import pandas as pd
from genome_som.exceptions import MalformedInput
from genome_som.io import (
    generate_score_matrix,
    genre_vectors,
    load_movie_records,
    parse_links,
    parse_movies,
    parse_scores,
    parse_tags,
    parse_vectors,
    read_map,
    tag_components,
    write_map,
    write_vectors,
)


@pytest.mark.io
class TestMapFiles:
    """Test the map file format"""

    @pytest.mark.io
    def test_read_map(self, genome_files):
        nodes, sizes = read_map(genome_files["map"])
        assert sizes == (2, 1)
        np.testing.assert_array_equal(nodes, [[0.9, 0.1], [0.2, 0.8]])

    @pytest.mark.io
    def test_write_then_read_is_exact(self, tmp_path):
        nodes = np.random.default_rng(0).uniform(-1, 1, size=(6, 4))
        path = tmp_path / "map.csv"
        write_map(nodes, (3, 2), path)

        assert path.read_text().splitlines()[0] == "3,2"
        read_nodes, sizes = read_map(path)
        assert sizes == (3, 2)
        np.testing.assert_array_equal(read_nodes, nodes)

    @pytest.mark.io
    def test_trailing_separator(self, tmp_path):
        path = tmp_path / "map.csv"
        path.write_text("2,1,\n1.0,2.0,\n3.0,4.0,\n")
        nodes, sizes = read_map(path)
        assert sizes == (2, 1)
        np.testing.assert_array_equal(nodes, [[1.0, 2.0], [3.0, 4.0]])

    @pytest.mark.io
    def test_missing_header(self, tmp_path):
        path = tmp_path / "map.csv"
        path.write_text("")
        with pytest.raises(MalformedInput):
            read_map(path)

    @pytest.mark.io
    def test_invalid_header(self, tmp_path):
        path = tmp_path / "map.csv"
        path.write_text("two,one\n1.0,2.0\n")
        with pytest.raises(MalformedInput):
            read_map(path)

    @pytest.mark.io
    def test_ragged_nodes(self, tmp_path):
        path = tmp_path / "map.csv"
        path.write_text("2,1\n1.0,2.0\n3.0\n")
        with pytest.raises(MalformedInput):
            read_map(path)

    @pytest.mark.io
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_map(tmp_path / "missing.csv")


@pytest.mark.io
class TestTagFiles:
    """Test tag parsing"""

    @pytest.mark.io
    def test_parse_tags(self, genome_files):
        tags = parse_tags(genome_files["tags"])
        assert tags == {1: "a", 2: "b"}
        assert tag_components(tags) == {"a": 0, "b": 1}

    @pytest.mark.io
    def test_non_contiguous_ids(self, tmp_path):
        path = tmp_path / "tags.csv"
        path.write_text("tagId,tag\n1,a\n3,c\n")
        with pytest.raises(MalformedInput):
            parse_tags(path)

    @pytest.mark.io
    def test_non_numeric_id(self, tmp_path):
        path = tmp_path / "tags.csv"
        path.write_text("tagId,tag\none,a\n")
        with pytest.raises(MalformedInput):
            parse_tags(path)


@pytest.mark.io
class TestMovieFiles:
    """Test movie and link parsing"""

    @pytest.mark.io
    def test_parse_movies(self, genome_files):
        movies = parse_movies(genome_files["movies"])
        assert movies == {
            1: "Alpha (1999)",
            2: "Beta, The (2001)",
            3: "Gamma (2005)",
        }

    @pytest.mark.io
    def test_parse_links_keeps_strings(self, genome_files):
        links = parse_links(genome_files["links"])
        assert links == {1: ("0000001", "11"), 2: ("0000002", "")}

    @pytest.mark.io
    def test_load_movie_records(self, genome_files):
        records = load_movie_records(genome_files["movies"], genome_files["links"])
        assert records[1].imdb_id == "0000001"
        assert records[1].tmdb_id == "11"
        assert records[3].imdb_id == ""
        assert records[2].title == "Beta, The (2001)"

    @pytest.mark.io
    def test_load_movie_records_without_links(self, genome_files):
        records = load_movie_records(genome_files["movies"])
        assert sorted(records) == [1, 2, 3]
        assert all(r.imdb_id == "" and r.tmdb_id == "" for r in records.values())

    @pytest.mark.io
    def test_too_few_columns(self, tmp_path):
        path = tmp_path / "movies.csv"
        path.write_text("movieId,title\n1,Alpha\n")
        with pytest.raises(MalformedInput):
            parse_movies(path)


@pytest.mark.io
class TestScores:
    """Test genome score conversion"""

    @pytest.mark.io
    def test_parse_scores(self, genome_files):
        scores = parse_scores(genome_files["scores"])
        assert list(scores.columns) == ["movie", "tag", "score"]
        assert len(scores) == 4

    @pytest.mark.io
    def test_generate_score_matrix(self, genome_files):
        vectors = generate_score_matrix(parse_scores(genome_files["scores"]))
        assert [movie_id for movie_id, _ in vectors] == [1, 2]
        np.testing.assert_array_equal(vectors[0][1], [0.9, 0.1])
        np.testing.assert_array_equal(vectors[1][1], [0.2, 0.8])

    @pytest.mark.io
    def test_missing_score(self):
        scores = pd.DataFrame(
            {"movie": [1, 1, 2], "tag": [1, 2, 1], "score": [0.1, 0.2, 0.3]}
        )
        with pytest.raises(MalformedInput):
            generate_score_matrix(scores)

    @pytest.mark.io
    def test_duplicate_score(self):
        scores = pd.DataFrame(
            {"movie": [1, 1, 1], "tag": [1, 2, 2], "score": [0.1, 0.2, 0.3]}
        )
        with pytest.raises(MalformedInput):
            generate_score_matrix(scores)

    @pytest.mark.io
    def test_empty_scores(self):
        scores = pd.DataFrame({"movie": [], "tag": [], "score": []})
        assert generate_score_matrix(scores) == []


@pytest.mark.io
class TestGenreVectors:
    """Test one-hot genre vectors"""

    @pytest.mark.io
    def test_genre_vectors(self, genome_files):
        names, vectors = genre_vectors(genome_files["movies"])
        assert names == ["Comedy", "Drama", "Horror"]
        assert sorted(vectors) == [1, 2]
        np.testing.assert_array_equal(vectors[1], [1.0, 1.0, 0.0])
        np.testing.assert_array_equal(vectors[2], [0.0, 0.0, 1.0])


@pytest.mark.io
class TestVectorFiles:
    """Test entity vector files"""

    @pytest.mark.io
    def test_parse_vectors(self, genome_files):
        vectors = parse_vectors(genome_files["vectors"])
        assert list(vectors) == [1, 2]
        np.testing.assert_array_equal(vectors[2], [0.2, 0.8])

    @pytest.mark.io
    def test_title_keys(self, tmp_path):
        path = tmp_path / "vectors.csv"
        path.write_text('"Alpha, The",0.5,0.5\nBeta,1.0,0.0\n')
        vectors = parse_vectors(path)
        assert list(vectors) == ["Alpha, The", "Beta"]

    @pytest.mark.io
    def test_write_then_parse(self, tmp_path):
        path = tmp_path / "vectors.csv"
        original = {3: np.array([0.1, 0.2]), 1: np.array([1.0 / 3.0, 0.0])}
        write_vectors(original, path)

        parsed = parse_vectors(path)
        assert list(parsed) == [3, 1]
        np.testing.assert_array_equal(parsed[1], original[1])

    @pytest.mark.io
    def test_duplicate_ids(self, tmp_path):
        path = tmp_path / "vectors.csv"
        path.write_text("1,0.1,0.2\n1,0.3,0.4\n")
        with pytest.raises(MalformedInput):
            parse_vectors(path)

    @pytest.mark.io
    def test_ragged_vectors(self, tmp_path):
        path = tmp_path / "vectors.csv"
        path.write_text("1,0.1,0.2\n2,0.3\n")
        with pytest.raises(MalformedInput):
            parse_vectors(path)

    @pytest.mark.io
    def test_empty_file(self, tmp_path):
        path = tmp_path / "vectors.csv"
        path.write_text("")
        assert parse_vectors(path) == {}
