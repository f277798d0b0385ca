"""
Tests for configuration classes and enums
"""

import pytest
from genome_som.config import DistanceFunction, MatchingMethod, TrainingConfig


@pytest.mark.unit
class TestEnums:
    """Test enum classes"""

    @pytest.mark.unit
    def test_distance_function_values(self):
        assert DistanceFunction.EUCLIDEAN.value == "euclidean"
        assert DistanceFunction.MANHATTAN.value == "manhattan"
        assert DistanceFunction.HEXAGONAL.value == "hexagonal"

    @pytest.mark.unit
    def test_matching_method_values(self):
        assert MatchingMethod.ENCLOSED.value == "enclosed"
        assert MatchingMethod.SIMILAR.value == "similar"


@pytest.mark.unit
class TestTrainingConfig:
    """Test TrainingConfig class"""

    @pytest.mark.unit
    def test_default_config(self):
        config = TrainingConfig()
        assert config.dimension_sizes == (20, 20)
        assert config.distance_function == DistanceFunction.HEXAGONAL
        assert config.epochs == 10000
        assert config.neighbourhood_scale == 1.0
        assert config.seed is None
        assert config.checkpoint_interval is None

    @pytest.mark.unit
    def test_coercion(self):
        config = TrainingConfig(dimension_sizes=[4, 3], distance_function="manhattan")
        assert config.dimension_sizes == (4, 3)
        assert config.distance_function == DistanceFunction.MANHATTAN

    @pytest.mark.unit
    def test_invalid_distance_function(self):
        with pytest.raises(ValueError):
            TrainingConfig(distance_function="cosine")

    @pytest.mark.unit
    def test_total_iterations(self):
        assert TrainingConfig(epochs=10000).total_iterations == 8000
        assert TrainingConfig(epochs=5).total_iterations == 4
        assert TrainingConfig(epochs=1).total_iterations == 1
        assert (
            TrainingConfig(epochs=100, iteration_fraction=1.0).total_iterations == 100
        )

    @pytest.mark.unit
    def test_config_to_dict(self):
        config = TrainingConfig(dimension_sizes=(3, 2), epochs=50, seed=42)
        config_dict = config.to_dict()

        assert config_dict["dimension_sizes"] == [3, 2]
        assert config_dict["distance_function"] == "hexagonal"
        assert config_dict["epochs"] == 50
        assert config_dict["seed"] == 42

    @pytest.mark.unit
    def test_config_from_dict(self):
        config_dict = {
            "dimension_sizes": [6, 4],
            "distance_function": "euclidean",
            "epochs": 200,
            "neighbourhood_scale": 0.5,
        }
        config = TrainingConfig.from_dict(config_dict)

        assert config.dimension_sizes == (6, 4)
        assert config.distance_function == DistanceFunction.EUCLIDEAN
        assert config.epochs == 200
        assert config.neighbourhood_scale == 0.5

    @pytest.mark.unit
    def test_config_round_trip(self):
        config = TrainingConfig(
            dimension_sizes=(7, 5),
            distance_function=DistanceFunction.MANHATTAN,
            epochs=300,
            seed=1,
            checkpoint_interval=100,
        )
        assert TrainingConfig.from_dict(config.to_dict()) == config
