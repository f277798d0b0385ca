"""
Tests for callback functionality
"""

import pytest
import tempfile
import os
from unittest.mock import MagicMock, patch
from genome_som import SelfOrganizingMap
from genome_som.callbacks import CheckpointCallback, QuantizationErrorCallback


@pytest.mark.integration
class TestCheckpointCallback:
    """Test checkpoint callback functionality"""

    @pytest.mark.unit
    def test_checkpoint_creation(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            checkpoint_dir = os.path.join(tmpdir, "checkpoints")
            callback = CheckpointCallback(checkpoint_dir, interval=2)
            assert callback.checkpoint_dir == checkpoint_dir
            assert callback.interval == 2
            assert os.path.isdir(checkpoint_dir)

    @pytest.mark.unit
    def test_invalid_interval(self, tmp_path):
        with pytest.raises(ValueError):
            CheckpointCallback(str(tmp_path), interval=0)

    @pytest.mark.integration
    def test_checkpoint_saving(self, small_data):
        with tempfile.TemporaryDirectory() as tmpdir:
            callback = CheckpointCallback(tmpdir, interval=2)

            som = SelfOrganizingMap.random((3, 3), 2, rng=42)
            som.train(small_data, epochs=5, rng=0, callbacks=[callback])

            checkpoint_files = sorted(
                f for f in os.listdir(tmpdir) if f.startswith("checkpoint_epoch_")
            )
            assert checkpoint_files == [
                "checkpoint_epoch_2.csv",
                "checkpoint_epoch_4.csv",
            ]
            assert os.path.exists(os.path.join(tmpdir, "final_map.csv"))

            final = SelfOrganizingMap.load(os.path.join(tmpdir, "final_map.csv"))
            assert final.dimension_sizes == (3, 3)

    @pytest.mark.unit
    def test_save_failure_is_logged(self, tmp_path):
        callback = CheckpointCallback(str(tmp_path), interval=1)
        som = MagicMock()
        som.save.side_effect = IOError("disk full")

        with patch("genome_som.callbacks.logger") as logger:
            callback.on_epoch_end(0, som)
            callback.on_training_end(som)

        assert logger.warning.call_count == 2


@pytest.mark.integration
class TestQuantizationErrorCallback:
    """Test quantization error recording"""

    @pytest.mark.unit
    def test_invalid_interval(self, small_data):
        with pytest.raises(ValueError):
            QuantizationErrorCallback(small_data, interval=-1)

    @pytest.mark.integration
    def test_history(self, small_data):
        callback = QuantizationErrorCallback(small_data, interval=3)
        som = SelfOrganizingMap.random((3, 3), 2, rng=42)
        som.train(small_data, epochs=9, rng=0, callbacks=[callback])

        assert [epoch for epoch, _ in callback.history] == [3, 6, 9]
        assert callback.history[-1][1] == pytest.approx(
            som.quantization_error(small_data)
        )

    @pytest.mark.integration
    def test_history_resets(self, small_data):
        callback = QuantizationErrorCallback(small_data, interval=2)
        som = SelfOrganizingMap.random((3, 3), 2, rng=42)
        som.train(small_data, epochs=4, rng=0, callbacks=[callback])
        som.train(small_data, epochs=2, rng=0, callbacks=[callback])

        assert [epoch for epoch, _ in callback.history] == [2]
