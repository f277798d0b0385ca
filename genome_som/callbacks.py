"""
Callback system for monitoring and intervention during map training
"""

import os
import structlog
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core import SelfOrganizingMap


logger = structlog.get_logger(__name__)


class Callback(ABC):
    """Abstract base class for callbacks"""

    @abstractmethod
    def on_epoch_end(self, epoch: int, som: "SelfOrganizingMap") -> None:
        pass

    @abstractmethod
    def on_training_begin(self, som: "SelfOrganizingMap") -> None:
        pass

    @abstractmethod
    def on_training_end(self, som: "SelfOrganizingMap") -> None:
        pass


class CheckpointCallback(Callback):
    """Write the map to disk every `interval` epochs and after training"""

    def __init__(self, checkpoint_dir: str, interval: int = 1000):
        if interval <= 0:
            raise ValueError(f"Checkpoint interval must be positive, got {interval}")
        self.checkpoint_dir = checkpoint_dir
        self.interval = interval
        os.makedirs(checkpoint_dir, exist_ok=True)

    def on_epoch_end(self, epoch: int, som: "SelfOrganizingMap") -> None:
        if (epoch + 1) % self.interval == 0:
            checkpoint_path = os.path.join(
                self.checkpoint_dir, f"checkpoint_epoch_{epoch + 1}.csv"
            )
            try:
                som.save(checkpoint_path)
                logger.debug("Checkpoint saved", path=checkpoint_path)
            except (IOError, OSError) as e:
                logger.warning("Failed to save checkpoint", error=str(e))

    def on_training_begin(self, som: "SelfOrganizingMap") -> None:
        pass

    def on_training_end(self, som: "SelfOrganizingMap") -> None:
        final_path = os.path.join(self.checkpoint_dir, "final_map.csv")
        try:
            som.save(final_path)
        except (IOError, OSError) as e:
            logger.warning("Failed to save final map", error=str(e))


class QuantizationErrorCallback(Callback):
    """Record the quantization error of a fixed sample set during training"""

    def __init__(self, samples, interval: int = 1000):
        if interval <= 0:
            raise ValueError(f"Logging interval must be positive, got {interval}")
        self.samples = samples
        self.interval = interval
        self.history = []

    def on_epoch_end(self, epoch: int, som: "SelfOrganizingMap") -> None:
        if (epoch + 1) % self.interval == 0:
            qe = som.quantization_error(self.samples)
            self.history.append((epoch + 1, qe))
            logger.info("Training progress", epoch=epoch + 1, quantization_error=qe)

    def on_training_begin(self, som: "SelfOrganizingMap") -> None:
        self.history = []

    def on_training_end(self, som: "SelfOrganizingMap") -> None:
        pass
