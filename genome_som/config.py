"""
Configuration classes and enums for the genome SOM
"""

from enum import Enum
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict


class DistanceFunction(Enum):
    """Topological distance used for the training neighbourhood"""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"
    HEXAGONAL = "hexagonal"


class MatchingMethod(Enum):
    """How tag search compares tag component planes"""

    ENCLOSED = "enclosed"
    SIMILAR = "similar"


@dataclass
class TrainingConfig:
    """Centralized configuration for training a map"""

    # Lattice
    dimension_sizes: Tuple[int, ...] = (20, 20)
    distance_function: DistanceFunction = DistanceFunction.HEXAGONAL

    # Schedule
    epochs: int = 10000
    neighbourhood_scale: float = 1.0
    # The decay schedule runs over this share of the epochs, the remaining
    # epochs fine-tune with a small neighbourhood
    iteration_fraction: float = 0.8

    # Reproducibility
    seed: Optional[int] = None

    # Checkpointing
    checkpoint_interval: Optional[int] = None
    checkpoint_dir: str = "checkpoints"

    def __post_init__(self):
        self.dimension_sizes = tuple(int(size) for size in self.dimension_sizes)
        self.distance_function = DistanceFunction(self.distance_function)

    @property
    def total_iterations(self) -> int:
        """Number of iterations the decay schedule is spread over"""
        return max(int(self.epochs * self.iteration_fraction + 1e-9), 1)

    def to_dict(self) -> Dict:
        """Convert config to dictionary for serialization"""
        config_dict = asdict(self)
        for key, value in config_dict.items():
            if isinstance(value, Enum):
                config_dict[key] = value.value
        config_dict["dimension_sizes"] = list(self.dimension_sizes)
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "TrainingConfig":
        """Create config from dictionary"""
        config_dict = dict(config_dict)
        if isinstance(config_dict.get("distance_function"), str):
            config_dict["distance_function"] = DistanceFunction(
                config_dict["distance_function"]
            )
        if "dimension_sizes" in config_dict:
            config_dict["dimension_sizes"] = tuple(config_dict["dimension_sizes"])
        return cls(**config_dict)
