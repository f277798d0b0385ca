"""Topological distance functions over SOM lattice coordinates."""

import numpy as np

from .config import DistanceFunction


class DistanceCalculator:
    """Calculate lattice distances using different metrics.

    All functions broadcast over the last axis, so a single BMU coordinate
    can be compared against an array of every node coordinate at once.
    """

    @staticmethod
    def euclidean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate Euclidean distance."""
        diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
        return np.sqrt(np.sum(diff * diff, axis=-1))

    @staticmethod
    def manhattan(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate Manhattan distance."""
        diff = np.asarray(a, dtype=np.int64) - np.asarray(b, dtype=np.int64)
        return np.sum(np.abs(diff), axis=-1).astype(np.float64)

    @staticmethod
    def cube_coordinates(coords: np.ndarray) -> np.ndarray:
        """Convert (column, row) offset coordinates to cube coordinates.

        Odd rows are shifted by half a cell, see
        http://www.redblobgames.com/grids/hexagons/
        """
        coords = np.asarray(coords, dtype=np.int64)
        column = coords[..., 0]
        row = coords[..., 1]
        x = column - (row + (row & 1)) // 2
        z = row
        y = -x - z
        return np.stack([x, y, z], axis=-1)

    @staticmethod
    def hexagonal(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Calculate the number of steps between two cells of a hexagonal grid."""
        cube_a = DistanceCalculator.cube_coordinates(a)
        cube_b = DistanceCalculator.cube_coordinates(b)
        return np.max(np.abs(cube_a - cube_b), axis=-1).astype(np.float64)


def get_distance_function(metric: DistanceFunction):
    """Look up the implementation for a distance function enum member"""
    metric_map = {
        DistanceFunction.EUCLIDEAN: DistanceCalculator.euclidean,
        DistanceFunction.MANHATTAN: DistanceCalculator.manhattan,
        DistanceFunction.HEXAGONAL: DistanceCalculator.hexagonal,
    }
    return metric_map[DistanceFunction(metric)]
