"""
Movie and tag search over a trained map
"""

import time
from typing import Dict, Mapping, Optional, Tuple, Union

import numpy as np
import structlog

from .config import DistanceFunction, MatchingMethod
from .core import SelfOrganizingMap
from .exceptions import DimensionMismatch
from .io import EntityKey, load_movie_records, parse_tags, parse_vectors, tag_components
from .observability import log_index_metrics, log_search_metrics
from .schemas import (
    MatchedTag,
    MovieRecord,
    MovieSearchRequest,
    MovieSearchResponse,
    TagSimilarityRequest,
    TagSimilarityResponse,
)

logger = structlog.get_logger(__name__)


class SearchIndex:
    """
    Static assignment of entities to the map nodes they are closest to

    Built once from a frozen map; nothing mutates it afterwards.
    """

    def __init__(
        self,
        som: SelfOrganizingMap,
        tags: Mapping[str, int],
        node_entities: Optional[Mapping[int, Tuple[EntityKey, ...]]] = None,
    ):
        """
        Args:
            som: Trained map
            tags: Tag names and their vector component
            node_entities: Entities grouped by the flat index of their BMU
        """
        invalid = [name for name, c in tags.items() if not 0 <= c < som.n_features]
        if invalid:
            raise DimensionMismatch(
                f"Tags {invalid[:5]} have no component in {som.n_features}-feature map"
            )
        self.map = som
        self.tags: Dict[str, int] = dict(tags)
        self._node_entities: Dict[int, Tuple[EntityKey, ...]] = {
            int(index): tuple(entities)
            for index, entities in (node_entities or {}).items()
        }

    @staticmethod
    def group_entities(
        som: SelfOrganizingMap, entity_vectors: Mapping[EntityKey, np.ndarray]
    ) -> Dict[int, Tuple[EntityKey, ...]]:
        """Group entity ids by the flat index of their BMU.

        Ids keep the iteration order of `entity_vectors` within a group.
        """
        if not entity_vectors:
            return {}

        keys = list(entity_vectors.keys())
        try:
            vectors = np.stack(
                [np.asarray(entity_vectors[key], dtype=np.float64) for key in keys]
            )
        except ValueError as e:
            raise DimensionMismatch(f"Entity vectors have inconsistent lengths: {e}")

        bmus = som.best_matching_units(vectors)

        groups: Dict[int, list] = {}
        for key, bmu in zip(keys, bmus.tolist()):
            groups.setdefault(bmu, []).append(key)
        return {index: tuple(entities) for index, entities in groups.items()}

    @classmethod
    def build(
        cls,
        som: SelfOrganizingMap,
        entity_vectors: Mapping[EntityKey, np.ndarray],
        tags: Optional[Mapping[str, int]] = None,
        **kwargs,
    ) -> "SearchIndex":
        """Run one BMU search per entity against a frozen map"""
        start_time = time.time()
        node_entities = cls.group_entities(som, entity_vectors)
        index = cls(som, tags or {}, node_entities=node_entities, **kwargs)

        duration = time.time() - start_time
        log_index_metrics(duration, len(entity_vectors))
        logger.info(
            "Search index built",
            index_type=cls.__name__,
            entities=len(entity_vectors),
            occupied_nodes=len(node_entities),
            duration_seconds=duration,
        )
        return index

    def entities_at(self, index: int) -> Tuple[EntityKey, ...]:
        """Entities whose BMU is the node at a flat index"""
        return self._node_entities.get(int(index), ())

    @property
    def occupied_nodes(self):
        return sorted(self._node_entities)

    @property
    def entity_count(self) -> int:
        return sum(len(entities) for entities in self._node_entities.values())


class MovieSearchIndex(SearchIndex):
    """Search index of movies with their display records"""

    def __init__(
        self,
        som: SelfOrganizingMap,
        tags: Mapping[str, int],
        node_entities: Optional[Mapping[int, Tuple[EntityKey, ...]]] = None,
        movies: Optional[Mapping[int, MovieRecord]] = None,
    ):
        super().__init__(som, tags, node_entities)
        self.movies: Dict[int, MovieRecord] = dict(movies or {})

    @classmethod
    def from_files(
        cls,
        map_path: str,
        tags_path: str,
        movies_path: str,
        vectors_path: str,
        links_path: Optional[str] = None,
        distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
    ) -> "MovieSearchIndex":
        """Load a map and genome files and index every movie"""
        som = SelfOrganizingMap.load(map_path, distance_function)
        tags = tag_components(parse_tags(tags_path))
        movies = load_movie_records(movies_path, links_path)
        vectors = parse_vectors(vectors_path)
        return cls.build(som, vectors, tags, movies=movies)


class TagSearchIndex(SearchIndex):
    """Search index of tag component planes, no entities needed"""

    @classmethod
    def from_files(
        cls,
        map_path: str,
        tags_path: str,
        distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
    ) -> "TagSearchIndex":
        som = SelfOrganizingMap.load(map_path, distance_function)
        return cls(som, tag_components(parse_tags(tags_path)))


class MovieSearchEngine:
    """Ranks movies by the weighted tag affinity of the node they map to"""

    def __init__(self, index: MovieSearchIndex):
        self.index = index

    def node_scores(self, request: MovieSearchRequest) -> np.ndarray:
        """Weighted sum of the requested tag components of every node.

        Tags unknown to the index are ignored.
        """
        nodes = self.index.map.nodes
        scores = np.zeros(nodes.shape[0], dtype=np.float64)
        for prioritized in request.tags:
            component = self.index.tags.get(prioritized.tag)
            if component is None:
                continue
            scores += nodes[:, component] * prioritized.priority
        return scores

    def find_movies(
        self, request: Union[MovieSearchRequest, Mapping]
    ) -> MovieSearchResponse:
        if not isinstance(request, MovieSearchRequest):
            request = MovieSearchRequest.model_validate(request)
        log_search_metrics("movies")

        scores = self.node_scores(request)
        candidates = np.arange(scores.shape[0])
        if request.threshold is not None:
            candidates = candidates[scores >= request.threshold]

        # Stable sort keeps node order for equal scores
        ranked = candidates[np.argsort(-scores[candidates], kind="stable")]

        movies = []
        for node in ranked.tolist():
            if request.count is not None and len(movies) >= request.count:
                break
            for movie_id in self.index.entities_at(node):
                record = self.index.movies.get(movie_id)
                if record is None:
                    continue
                movies.append(record)

        if request.count is not None:
            movies = movies[: request.count]

        logger.debug(
            "Movie search",
            tags=[t.tag for t in request.tags],
            nodes=len(ranked),
            movies=len(movies),
        )
        return MovieSearchResponse(request=request, movies=movies)


class TagSearchEngine:
    """Ranks tags by how closely their component plane follows the requested tags"""

    def __init__(self, index: SearchIndex):
        self.index = index

    def tag_scores(
        self, requested: Tuple[str, ...], method: MatchingMethod
    ) -> Tuple[Tuple[str, ...], np.ndarray]:
        """
        Score every tag not in `requested`; lower scores mean closer tags

        score(t) = sum over requested r of
            sqrt(sum over nodes of max(node[t] - node[r], 0)^2)   enclosed
            sqrt(sum over nodes of (node[t] - node[r])^2)         similar

        Returns:
            Tuple of (tag names in component order, scores)
        """
        nodes = self.index.map.nodes
        excluded = set(requested)
        candidates = sorted(
            ((component, name) for name, component in self.index.tags.items()
             if name not in excluded)
        )
        names = tuple(name for _, name in candidates)
        planes = nodes[:, [component for component, _ in candidates]]

        scores = np.zeros(len(names), dtype=np.float64)
        for name in requested:
            component = self.index.tags.get(name)
            if component is None:
                continue
            diff = planes - nodes[:, [component]]
            if method == MatchingMethod.ENCLOSED:
                diff = np.maximum(diff, 0.0)
            scores += np.sqrt(np.sum(diff * diff, axis=0))
        return names, scores

    def similar_tags(
        self, request: Union[TagSimilarityRequest, Mapping]
    ) -> TagSimilarityResponse:
        if not isinstance(request, TagSimilarityRequest):
            request = TagSimilarityRequest.model_validate(request)
        log_search_metrics("tags", request.method.value)

        requested = tuple(dict.fromkeys(request.tags))
        names, scores = self.tag_scores(requested, request.method)

        candidates = np.arange(len(names))
        if request.threshold is not None:
            candidates = candidates[scores <= request.threshold]
        ranked = candidates[np.argsort(scores[candidates], kind="stable")]
        if request.count is not None:
            ranked = ranked[: request.count]

        matches = [MatchedTag(tag=names[i], score=float(scores[i])) for i in ranked]
        logger.debug(
            "Tag search",
            tags=list(requested),
            method=request.method.value,
            matches=len(matches),
        )
        return TagSimilarityResponse(request=request, matches=matches)
