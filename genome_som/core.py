"""
Core self-organizing map implementation
"""

import time
import numpy as np
import structlog
from datetime import datetime
from typing import Optional, List, Dict, Sequence, Tuple, Union
from tqdm import tqdm

from .callbacks import Callback, CheckpointCallback
from .config import DistanceFunction, TrainingConfig
from .distance import get_distance_function
from .exceptions import DimensionMismatch, DimensionalityMismatch, InvalidDimensions
from .io import read_map, write_map
from .observability import log_training_metrics

logger = structlog.get_logger(__name__)

Coordinate = Tuple[int, ...]
RandomSource = Union[None, int, np.random.Generator]


def _validate_dimension_sizes(dimension_sizes: Sequence[int]) -> Tuple[int, ...]:
    sizes = tuple(int(size) for size in dimension_sizes)
    if not sizes or any(size <= 0 for size in sizes):
        raise InvalidDimensions(
            f"Dimension sizes must be positive, got {list(dimension_sizes)}"
        )
    return sizes


class SelfOrganizingMap:
    """
    Kohonen self-organizing map over an N-dimensional lattice

    Nodes are stored row-major in a (n_nodes, n_features) array where the
    first lattice dimension varies fastest. Use `coordinates` and `index` to
    convert between flat node indices and lattice coordinates.
    """

    # Number of distance matrix elements evaluated at once in batch BMU search
    BMU_BATCH_ELEMENTS = 1 << 22

    def __init__(
        self,
        nodes: np.ndarray,
        dimension_sizes: Sequence[int],
        distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
        verbose: bool = False,
    ):
        """
        Wrap existing node data in a map

        Args:
            nodes: Node vectors in row-major lattice order
            dimension_sizes: Lattice shape
            distance_function: Topological distance used for the neighbourhood
            verbose: Whether to show training progress
        """
        self.dimension_sizes = _validate_dimension_sizes(dimension_sizes)
        self.distance_function = DistanceFunction(distance_function)
        self.verbose = verbose

        if (
            self.distance_function == DistanceFunction.HEXAGONAL
            and len(self.dimension_sizes) != 2
        ):
            raise DimensionalityMismatch(
                "Hexagonal distance requires a 2-dimensional lattice, "
                f"got {len(self.dimension_sizes)} dimensions"
            )

        try:
            self.nodes = np.array(nodes, dtype=np.float64)
        except ValueError as e:
            raise DimensionMismatch(f"Nodes have inconsistent lengths: {e}")

        expected = int(np.prod(self.dimension_sizes))
        if self.nodes.ndim != 2:
            raise DimensionMismatch(
                f"Nodes must form a 2D array, got {self.nodes.ndim}D"
            )
        if self.nodes.shape[0] != expected:
            raise DimensionMismatch(
                f"Expected {expected} nodes for dimension sizes "
                f"{list(self.dimension_sizes)}, got {self.nodes.shape[0]}"
            )

        self._distance = get_distance_function(self.distance_function)
        self.lattice_coordinates = self._create_lattice_coordinates()

        self.metadata = {
            "creation_time": datetime.now().isoformat(),
            "total_epochs": 0,
        }

    @classmethod
    def random(
        cls,
        dimension_sizes: Sequence[int],
        output_size: int,
        distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
        rng: RandomSource = None,
        verbose: bool = False,
    ) -> "SelfOrganizingMap":
        """
        Create a map with node components drawn uniformly from [-1, 1]

        Args:
            dimension_sizes: Lattice shape
            output_size: Length of every node vector
            distance_function: Topological distance used for the neighbourhood
            rng: Random generator or seed
        """
        sizes = _validate_dimension_sizes(dimension_sizes)
        if output_size <= 0:
            raise InvalidDimensions(f"Output size must be positive, got {output_size}")

        rng = np.random.default_rng(rng)
        nodes = rng.uniform(-1.0, 1.0, size=(int(np.prod(sizes)), output_size))
        return cls(nodes, sizes, distance_function, verbose=verbose)

    @classmethod
    def from_config(
        cls, config: TrainingConfig, output_size: int, verbose: bool = False
    ) -> "SelfOrganizingMap":
        """Create a random map shaped by a training configuration"""
        return cls.random(
            config.dimension_sizes,
            output_size,
            config.distance_function,
            rng=config.seed,
            verbose=verbose,
        )

    @property
    def dimensions(self) -> int:
        return len(self.dimension_sizes)

    @property
    def n_nodes(self) -> int:
        return self.nodes.shape[0]

    @property
    def n_features(self) -> int:
        return self.nodes.shape[1]

    def __getitem__(self, location: Union[int, Sequence[int]]) -> np.ndarray:
        if isinstance(location, (int, np.integer)):
            location = (location,)
        return self.nodes[self.index(location)]

    def _create_lattice_coordinates(self) -> np.ndarray:
        """Coordinates of every node, one row per flat index"""
        idx = np.arange(self.n_nodes)
        columns = []
        for size in self.dimension_sizes:
            columns.append(idx % size)
            idx = idx // size
        return np.stack(columns, axis=-1)

    def coordinates(self, index: int) -> Coordinate:
        """Transform a flat node index to a lattice coordinate"""
        if not 0 <= index < self.n_nodes:
            raise IndexError(f"Node index {index} out of range [0, {self.n_nodes})")
        result = []
        idx = int(index)
        for size in self.dimension_sizes:
            result.append(idx % size)
            idx = idx // size
        return tuple(result)

    def index(self, location: Sequence[int]) -> int:
        """Transform a lattice coordinate to a flat node index"""
        if len(location) != self.dimensions:
            raise DimensionalityMismatch(
                f"Location {list(location)} must have {self.dimensions} "
                "coordinates, one per map dimension"
            )
        index = 0
        for coordinate, size in reversed(list(zip(location, self.dimension_sizes))):
            if not 0 <= coordinate < size:
                raise IndexError(
                    f"Coordinate {coordinate} out of range for dimension of size {size}"
                )
            index = index * size + int(coordinate)
        return index

    def _check_samples(self, samples: np.ndarray) -> np.ndarray:
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2:
            raise ValueError(f"Input data must be 2D array, got {samples.ndim}D")
        if samples.shape[1] != self.n_features:
            raise DimensionMismatch(
                f"Expected {self.n_features} features, got {samples.shape[1]}"
            )
        if not np.all(np.isfinite(samples)):
            raise ValueError("Input data contains NaN or infinite values")
        return samples

    def _best_matching_units(self, samples: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """BMU indices and squared distances for validated samples"""
        indices = np.empty(len(samples), dtype=np.int64)
        distances = np.empty(len(samples), dtype=np.float64)
        if self.n_nodes == 0 or len(samples) == 0:
            return indices, distances

        chunk = max(1, self.BMU_BATCH_ELEMENTS // (self.n_nodes * max(self.n_features, 1)))
        for start in range(0, len(samples), chunk):
            batch = samples[start : start + chunk]
            diff = batch[:, np.newaxis, :] - self.nodes[np.newaxis, :, :]
            dist_sq = np.sum(diff * diff, axis=-1)
            # argmin returns the first minimum, so ties go to the lowest index
            best = np.argmin(dist_sq, axis=1)
            indices[start : start + len(batch)] = best
            distances[start : start + len(batch)] = dist_sq[np.arange(len(batch)), best]
        return indices, distances

    def best_matching_unit(self, sample: np.ndarray) -> Optional[int]:
        """
        Find the node closest to a sample in weight space

        Always uses the squared Euclidean distance between node vectors and
        the sample, independent of the topological distance function.

        Returns:
            Flat index of the closest node (lowest index on ties), or None
            for a map without nodes
        """
        if self.n_nodes == 0:
            return None
        sample = np.asarray(sample, dtype=np.float64).reshape(1, -1)
        indices, _ = self._best_matching_units(self._check_samples(sample))
        return int(indices[0])

    def best_matching_units(self, samples: np.ndarray) -> np.ndarray:
        """Find the BMU of every row of `samples`"""
        indices, _ = self._best_matching_units(self._check_samples(samples))
        return indices

    def decay_parameters(
        self,
        total_iterations: int,
        current_iteration: int,
        neighbourhood_scale: float = 1.0,
    ) -> Tuple[float, float, float]:
        """
        Neighbourhood radius and learning rate at an iteration

        Both decay exponentially with the same time constant
        lambda = total_iterations / ln(nabla_0), nabla_0 = max(dimension_sizes) / 2.

        Returns:
            Tuple of (nabla, nabla_sq_2, alpha)
        """
        if total_iterations <= 0:
            raise ValueError(
                f"Total iterations must be positive, got {total_iterations}"
            )
        if neighbourhood_scale <= 0:
            raise ValueError(
                f"Neighbourhood scale must be positive, got {neighbourhood_scale}"
            )

        nabla_0 = max(self.dimension_sizes) / 2
        log_nabla_0 = np.log(nabla_0)
        # Maps with nabla_0 <= 1 have no room to shrink the neighbourhood
        lam = total_iterations / log_nabla_0 if log_nabla_0 > 0 else np.inf

        decay = float(np.exp(-current_iteration / lam))
        nabla = nabla_0 * decay
        nabla_sq_2 = 2 * nabla * nabla * neighbourhood_scale
        alpha = decay
        return nabla, nabla_sq_2, alpha

    def neighbourhood(
        self,
        bmu_coordinates: Sequence[int],
        total_iterations: int,
        current_iteration: int,
        neighbourhood_scale: float = 1.0,
    ) -> np.ndarray:
        """
        Update strength of every node for a BMU at `bmu_coordinates`

        influence(i) = exp(-dist(bmu, i)^2 / nabla_sq_2) * alpha
        """
        _, nabla_sq_2, alpha = self.decay_parameters(
            total_iterations, current_iteration, neighbourhood_scale
        )
        distances = self._distance(
            np.asarray(bmu_coordinates), self.lattice_coordinates
        )

        if nabla_sq_2 > 0:
            exponent = -(distances**2) / nabla_sq_2
        else:
            # Radius underflowed: only the BMU itself is updated
            exponent = np.where(distances == 0, 0.0, -np.inf)
        return np.exp(exponent) * alpha

    def update(
        self,
        sample: np.ndarray,
        total_iterations: int,
        current_iteration: int,
        neighbourhood_scale: float = 1.0,
    ) -> None:
        """
        Move the BMU of `sample` and its lattice neighbours towards the sample

        Args:
            sample: Sample towards which the map is adjusted
            total_iterations: Number of iterations the decay schedule spans
            current_iteration: Current training iteration
            neighbourhood_scale: Scale applied to the neighbourhood size
        """
        bmu = self.best_matching_unit(sample)
        if bmu is None:
            return

        influence = self.neighbourhood(
            self.coordinates(bmu),
            total_iterations,
            current_iteration,
            neighbourhood_scale,
        )
        sample = np.asarray(sample, dtype=np.float64)
        # Right-hand side reads the pre-update nodes only
        self.nodes += influence[:, np.newaxis] * (sample - self.nodes)

    def train(
        self,
        data: np.ndarray,
        epochs: int,
        neighbourhood_scale: float = 1.0,
        rng: RandomSource = None,
        total_iterations: Optional[int] = None,
        callbacks: Optional[List[Callback]] = None,
    ) -> "SelfOrganizingMap":
        """
        Train the map with one randomly drawn sample per epoch

        Args:
            data: Samples of shape (n_samples, n_features)
            epochs: Number of updates to perform
            neighbourhood_scale: Scale applied to the neighbourhood size
            rng: Random generator or seed used to draw samples
            total_iterations: Length of the decay schedule, defaults to 4/5
                of the epochs so the last epochs fine-tune locally
            callbacks: List of callback objects

        Returns:
            self for method chaining
        """
        data = self._check_samples(data)
        if data.shape[0] == 0:
            raise ValueError("Input data is empty")
        if epochs <= 0:
            raise ValueError(f"Epochs must be positive, got {epochs}")

        if total_iterations is None:
            total_iterations = max(epochs * 4 // 5, 1)
        rng = np.random.default_rng(rng)
        callbacks = callbacks or []

        logger.info(
            "Training started",
            dimension_sizes=list(self.dimension_sizes),
            samples=data.shape[0],
            epochs=epochs,
            total_iterations=total_iterations,
            neighbourhood_scale=neighbourhood_scale,
        )
        start_time = time.time()

        for callback in callbacks:
            callback.on_training_begin(self)

        iterator = range(epochs)
        if self.verbose:
            iterator = tqdm(iterator, desc="Training SOM")

        for epoch in iterator:
            sample = data[rng.integers(data.shape[0])]
            self.update(sample, total_iterations, epoch, neighbourhood_scale)

            for callback in callbacks:
                callback.on_epoch_end(epoch, self)

        for callback in callbacks:
            callback.on_training_end(self)

        duration = time.time() - start_time
        self.metadata["total_epochs"] += epochs
        self.metadata["last_training"] = datetime.now().isoformat()
        log_training_metrics(self.dimension_sizes, duration, epochs)
        logger.info("Training completed", epochs=epochs, duration_seconds=duration)

        return self

    def fit(self, data: np.ndarray, config: TrainingConfig) -> "SelfOrganizingMap":
        """Train with the schedule, seed and checkpointing of a config"""
        callbacks = []
        if config.checkpoint_interval:
            callbacks.append(
                CheckpointCallback(config.checkpoint_dir, config.checkpoint_interval)
            )
        return self.train(
            data,
            config.epochs,
            neighbourhood_scale=config.neighbourhood_scale,
            rng=config.seed,
            total_iterations=config.total_iterations,
            callbacks=callbacks,
        )

    def quantization_error(self, data: np.ndarray) -> float:
        """Mean squared distance of samples to their BMU"""
        data = self._check_samples(data)
        if data.shape[0] == 0:
            raise ValueError("Input data is empty")
        _, distances = self._best_matching_units(data)
        return float(np.mean(distances))

    def save(self, filepath: str) -> None:
        """Save the map in the comma separated map format"""
        write_map(self.nodes, self.dimension_sizes, filepath)
        logger.debug("Map saved", path=str(filepath))

    @classmethod
    def load(
        cls,
        filepath: str,
        distance_function: DistanceFunction = DistanceFunction.HEXAGONAL,
    ) -> "SelfOrganizingMap":
        """Load a map written by `save`"""
        nodes, dimension_sizes = read_map(filepath)
        som = cls(nodes, dimension_sizes, distance_function)
        logger.debug(
            "Map loaded",
            path=str(filepath),
            dimension_sizes=list(dimension_sizes),
            n_features=som.n_features,
        )
        return som

    def get_info(self) -> Dict:
        """Get summary information about the map"""
        return {
            "dimension_sizes": list(self.dimension_sizes),
            "n_nodes": self.n_nodes,
            "n_features": self.n_features,
            "distance_function": self.distance_function.value,
            "metadata": self.metadata,
        }
