"""
Example usage of the genome SOM package
"""

import os
import shutil
import tempfile

import numpy as np

from genome_som import (
    DistanceFunction,
    MatchingMethod,
    MovieRecord,
    MovieSearchEngine,
    MovieSearchIndex,
    QuantizationErrorCallback,
    SelfOrganizingMap,
    TagSearchEngine,
    TagSearchIndex,
    TrainingConfig,
)


def square_points(rng: np.random.Generator, n_points: int = 400) -> np.ndarray:
    """Points scattered around the corners of the unit square"""
    corners = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    picks = corners[rng.integers(len(corners), size=n_points)]
    return picks + rng.normal(scale=0.05, size=picks.shape)


def run_examples():
    """Run examples of map training and search"""

    rng = np.random.default_rng(42)
    workdir = tempfile.mkdtemp(prefix="genome_som_")

    # Example 1: Points of a square on a 20x20 Manhattan lattice
    print("Example 1: Square points on a Manhattan map")
    data = square_points(rng)

    som = SelfOrganizingMap.random(
        (20, 20), 2, DistanceFunction.MANHATTAN, rng=rng, verbose=True
    )
    qe_callback = QuantizationErrorCallback(data, interval=500)
    som.train(data, epochs=2000, rng=rng, callbacks=[qe_callback])

    for epoch, qe in qe_callback.history:
        print(f"  epoch {epoch}: quantization error {qe:.5f}")

    corner_nodes = som.best_matching_units(np.array([[0, 0], [0, 1], [1, 0], [1, 1]]))
    for node in corner_nodes:
        print(f"  corner maps to node {som.coordinates(node)}")

    # Example 2: Save, load and continue training
    print("\nExample 2: Incremental training")
    map_path = os.path.join(workdir, "square_map.csv")
    som.save(map_path)

    som_loaded = SelfOrganizingMap.load(map_path, DistanceFunction.MANHATTAN)
    som_loaded.train(data, epochs=500, rng=rng)
    print(f"Additional training complete. Info: {som_loaded.get_info()['n_nodes']} nodes")

    # Example 3: Hexagonal map trained from a config
    print("\nExample 3: Hexagonal map from a training config")
    config = TrainingConfig(dimension_sizes=(10, 10), epochs=1000, seed=7)
    hex_som = SelfOrganizingMap.from_config(config, data.shape[1])
    hex_som.fit(data, config)
    print(f"Quantization error: {hex_som.quantization_error(data):.5f}")

    # Example 4: Movie and tag search over a small synthetic genome
    print("\nExample 4: Movie and tag search")
    tags = {"funny": 0, "dark": 1, "romance": 2, "violence": 3}
    genomes = {
        1: np.array([0.9, 0.1, 0.6, 0.0]),
        2: np.array([0.1, 0.9, 0.0, 0.8]),
        3: np.array([0.7, 0.2, 0.9, 0.1]),
        4: np.array([0.2, 0.8, 0.1, 0.9]),
    }
    movies = {
        1: MovieRecord(id=1, title="Sunny Side (2001)"),
        2: MovieRecord(id=2, title="Night Shift (1999)"),
        3: MovieRecord(id=3, title="Summer Letters (2010)"),
        4: MovieRecord(id=4, title="Cold Harbour (2005)"),
    }

    genome_som = SelfOrganizingMap.random((4, 4), len(tags), rng=rng)
    genome_som.train(np.stack(list(genomes.values())), epochs=500, rng=rng)

    movie_index = MovieSearchIndex.build(genome_som, genomes, tags, movies=movies)
    response = MovieSearchEngine(movie_index).find_movies(
        {"tags": [{"tag": "funny", "priority": 1.0}, {"tag": "romance"}], "count": 2}
    )
    for movie in response.movies:
        print(f"  {movie.title}")

    tag_engine = TagSearchEngine(TagSearchIndex(genome_som, tags))
    for method in MatchingMethod:
        matches = tag_engine.similar_tags({"tags": ["dark"], "method": method.value})
        ranked = ", ".join(f"{m.tag} ({m.score:.3f})" for m in matches.matches)
        print(f"  {method.value} to 'dark': {ranked}")

    # Clean up
    print("\nCleaning up generated files...")
    shutil.rmtree(workdir, ignore_errors=True)


if __name__ == "__main__":
    run_examples()
