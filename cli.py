"""
Command Line Interface for genome SOM training and search
"""

import argparse
import json
import os
import sys
from typing import List, Tuple

import numpy as np
import structlog
import uvicorn

from genome_som import (
    DistanceFunction,
    MatchingMethod,
    MovieSearchEngine,
    MovieSearchIndex,
    SelfOrganizingMap,
    TagSearchEngine,
    TagSearchIndex,
    TrainingConfig,
    setup_logging,
    trace_operation,
)
from genome_som.io import (
    EntityKey,
    generate_score_matrix,
    genre_vectors,
    parse_scores,
    parse_vectors,
    write_vectors,
)

# Initialize observability
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=False,  # Use console format for CLI
)

logger = structlog.get_logger()

DISTANCE_CHOICES = [d.value for d in DistanceFunction]


def load_data(file_path: str) -> Tuple[List[EntityKey], np.ndarray]:
    """Load an entity vector file as ids and a sample matrix"""
    vectors = parse_vectors(file_path)
    if not vectors:
        raise ValueError(f"No vectors found in {file_path}")
    keys = list(vectors.keys())
    return keys, np.stack([vectors[key] for key in keys])


def train_command(args) -> None:
    """Train a map on an entity vector file"""
    print(f"Loading data from: {args.dataset}")
    try:
        _, data = load_data(args.dataset)
        print(f"Data shape: {data.shape}")

        config = TrainingConfig(
            dimension_sizes=(args.width, args.height),
            distance_function=DistanceFunction(args.distance),
            epochs=args.epochs,
            neighbourhood_scale=args.nscale,
            seed=args.seed,
            checkpoint_interval=args.checkpoint_interval,
            checkpoint_dir=args.checkpoint_dir,
        )

        print(
            f"Training SOM: {args.width}x{args.height}, {args.epochs} epochs, "
            f"distance: {args.distance}"
        )

        with trace_operation("train", **config.to_dict()):
            som = SelfOrganizingMap.from_config(
                config, data.shape[1], verbose=args.verbose
            )
            som.fit(data, config)

        print("Training completed!")
        print(f"Quantization Error: {som.quantization_error(data):.4f}")

        som.save(args.output)
        print(f"Map saved to: {args.output}")

    except (ValueError, OSError) as e:
        print(f"Error training map: {e}", file=sys.stderr)
        sys.exit(1)


def convert_command(args) -> None:
    """Convert a genome scores file into a movie vector file"""
    print(f"Loading scores from: {args.scores}")
    try:
        vectors = generate_score_matrix(parse_scores(args.scores))
        write_vectors(vectors, args.output)
        print(f"Wrote {len(vectors)} movie vectors to: {args.output}")
    except (ValueError, OSError) as e:
        print(f"Error converting scores: {e}", file=sys.stderr)
        sys.exit(1)


def genres_command(args) -> None:
    """Write one-hot genre vectors of a movie file"""
    print(f"Loading movies from: {args.movies}")
    try:
        names, vectors = genre_vectors(args.movies)
        write_vectors(vectors, args.output)
        print(f"Genres ({len(names)}): {', '.join(names)}")
        print(f"Wrote {len(vectors)} genre vectors to: {args.output}")
    except (ValueError, OSError) as e:
        print(f"Error building genre vectors: {e}", file=sys.stderr)
        sys.exit(1)


def info_command(args) -> None:
    """Show information about a trained map"""
    print(f"Loading map from: {args.map}")
    try:
        som = SelfOrganizingMap.load(args.map, DistanceFunction(args.distance))
        info = som.get_info()

        print("\n=== Map Information ===")
        print(f"Dimension sizes: {'x'.join(str(s) for s in info['dimension_sizes'])}")
        print(f"Nodes: {info['n_nodes']}")
        print(f"Features: {info['n_features']}")
        print(f"Distance function: {info['distance_function']}")

    except (ValueError, OSError) as e:
        print(f"Error loading map: {e}", file=sys.stderr)
        sys.exit(1)


def movies_command(args) -> None:
    """Answer one movie search request and print the JSON response"""
    try:
        index = MovieSearchIndex.from_files(
            args.map,
            args.tags,
            args.movies,
            args.vectors,
            links_path=args.links,
            distance_function=DistanceFunction(args.distance),
        )
        response = MovieSearchEngine(index).find_movies(json.loads(args.query))
        print(response.model_dump_json(by_alias=True, indent=2))
    except (ValueError, OSError) as e:
        print(f"Error searching movies: {e}", file=sys.stderr)
        sys.exit(1)


def tags_command(args) -> None:
    """Answer one tag similarity request and print the JSON response"""
    try:
        index = TagSearchIndex.from_files(
            args.map, args.tags, distance_function=DistanceFunction(args.distance)
        )
        query = json.loads(args.query)
        if args.method and isinstance(query, dict):
            query.setdefault("method", args.method)
        response = TagSearchEngine(index).similar_tags(query)
        print(response.model_dump_json(by_alias=True, indent=2))
    except (ValueError, OSError) as e:
        print(f"Error searching tags: {e}", file=sys.stderr)
        sys.exit(1)


def serve_command(args) -> None:
    """Run the HTTP API over a trained map"""
    settings = {
        "GENOME_SOM_MAP": args.map,
        "GENOME_SOM_TAGS": args.tags,
        "GENOME_SOM_MOVIES": args.movies,
        "GENOME_SOM_VECTORS": args.vectors,
        "GENOME_SOM_LINKS": args.links,
        "GENOME_SOM_DISTANCE": args.distance,
    }
    for name, value in settings.items():
        if value:
            os.environ[name] = value

    print(f"Serving {args.map} on port {args.port}")
    uvicorn.run("api:app", host=args.host, port=args.port, log_level="info")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Genome self-organizing map CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Train command
    train_parser = subparsers.add_parser("train", help="Train a new map")
    train_parser.add_argument("width", type=int, help="Map width")
    train_parser.add_argument("height", type=int, help="Map height")
    train_parser.add_argument("epochs", type=int, help="Number of training epochs")
    train_parser.add_argument("dataset", help="Entity vector file")
    train_parser.add_argument(
        "--output", "-o", default="map.csv", help="Output map file"
    )
    train_parser.add_argument(
        "--nscale", type=float, default=1.0, help="Neighbourhood scale"
    )
    train_parser.add_argument(
        "--distance",
        choices=DISTANCE_CHOICES,
        default=DistanceFunction.HEXAGONAL.value,
        help="Lattice distance function",
    )
    train_parser.add_argument(
        "--seed", type=int, help="Random seed for reproducibility"
    )
    train_parser.add_argument(
        "--checkpoint-interval", type=int, help="Save the map every N epochs"
    )
    train_parser.add_argument(
        "--checkpoint-dir", default="checkpoints", help="Checkpoint directory"
    )
    train_parser.add_argument("--verbose", action="store_true", help="Verbose output")

    # Convert command
    convert_parser = subparsers.add_parser(
        "convert", help="Convert genome scores into movie vectors"
    )
    convert_parser.add_argument("scores", help="Genome scores file")
    convert_parser.add_argument(
        "--output", "-o", default="vectors.csv", help="Output vector file"
    )

    # Genres command
    genres_parser = subparsers.add_parser(
        "genres", help="Build one-hot genre vectors from a movie file"
    )
    genres_parser.add_argument("movies", help="Movie file")
    genres_parser.add_argument(
        "--output", "-o", default="genres.csv", help="Output vector file"
    )

    # Info command
    info_parser = subparsers.add_parser("info", help="Show map information")
    info_parser.add_argument("map", help="Trained map file")

    # Movies command
    movies_parser = subparsers.add_parser("movies", help="Search movies by tags")
    movies_parser.add_argument("map", help="Trained map file")
    movies_parser.add_argument("tags", help="Genome tag file")
    movies_parser.add_argument("movies", help="Movie file")
    movies_parser.add_argument("vectors", help="Movie vector file")
    movies_parser.add_argument("query", help="JSON movie search request")
    movies_parser.add_argument("--links", help="Links file with external ids")

    # Tags command
    tags_parser = subparsers.add_parser("tags", help="Search enclosed or similar tags")
    tags_parser.add_argument("map", help="Trained map file")
    tags_parser.add_argument("tags", help="Genome tag file")
    tags_parser.add_argument("query", help="JSON tag similarity request")
    tags_parser.add_argument(
        "--method",
        choices=[m.value for m in MatchingMethod],
        help="Matching method, required unless given in the query",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("map", help="Trained map file")
    serve_parser.add_argument("tags", help="Genome tag file")
    serve_parser.add_argument("--movies", help="Movie file")
    serve_parser.add_argument("--vectors", help="Movie vector file")
    serve_parser.add_argument("--links", help="Links file with external ids")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument(
        "--port", type=int, default=int(os.getenv("PORT", 8000)), help="Port"
    )

    for subparser in (info_parser, movies_parser, tags_parser, serve_parser):
        subparser.add_argument(
            "--distance",
            choices=DISTANCE_CHOICES,
            default=DistanceFunction.HEXAGONAL.value,
            help="Lattice distance function of the map",
        )

    # Version command
    subparsers.add_parser("version", help="Show version information")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "train":
        train_command(args)
    elif args.command == "convert":
        convert_command(args)
    elif args.command == "genres":
        genres_command(args)
    elif args.command == "info":
        info_command(args)
    elif args.command == "movies":
        movies_command(args)
    elif args.command == "tags":
        tags_command(args)
    elif args.command == "serve":
        serve_command(args)
    elif args.command == "version":
        print("Genome SOM CLI v0.1.0")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
