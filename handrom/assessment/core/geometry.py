"""
Geometry primitives for HANDROM.

3D vector operations shared by every angle calculator. Inputs may be
Point3D instances, numpy arrays or plain (x, y, z) sequences.
"""

import logging
from typing import Iterable, Union, Sequence

import numpy as np

from .data_types import Point3D

logger = logging.getLogger(__name__)

VectorLike = Union[Point3D, np.ndarray, Sequence[float]]

EPSILON = 1e-9


def as_vector(value: VectorLike) -> np.ndarray:
    if isinstance(value, Point3D):
        return value.to_array()
    return np.asarray(value, dtype=np.float64)


def subtract(a: VectorLike, b: VectorLike) -> np.ndarray:
    """Vector from b to a."""
    return as_vector(a) - as_vector(b)


def dot(a: VectorLike, b: VectorLike) -> float:
    return float(np.dot(as_vector(a), as_vector(b)))


def cross(a: VectorLike, b: VectorLike) -> np.ndarray:
    return np.cross(as_vector(a), as_vector(b))


def magnitude(v: VectorLike) -> float:
    return float(np.linalg.norm(as_vector(v)))


def normalize(v: VectorLike) -> np.ndarray:
    """Unit vector in the direction of v; the zero vector stays zero."""
    vec = as_vector(v)
    length = np.linalg.norm(vec)
    if length < EPSILON:
        return np.zeros(3)
    return vec / length


def angle_between(v1: VectorLike, v2: VectorLike) -> float:
    """
    Unsigned angle between two vectors.

    Args:
        v1: First vector
        v2: Second vector

    Returns:
        Angle in degrees within [0, 180]. A zero-length input yields 0.
    """
    a = as_vector(v1)
    b = as_vector(v2)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a < EPSILON or norm_b < EPSILON:
        logger.debug("Degenerate geometry: zero-length vector in angle calculation")
        return 0.0

    cos_angle = np.dot(a, b) / (norm_a * norm_b)
    cos_angle = np.clip(cos_angle, -1.0, 1.0)  # Handle floating point errors

    return float(np.degrees(np.arccos(cos_angle)))


def joint_angle(proximal: VectorLike, joint: VectorLike, distal: VectorLike) -> float:
    """
    Interior angle at joint formed by proximal-joint-distal.

    A straight segment gives 180.
    """
    return angle_between(subtract(proximal, joint), subtract(distal, joint))


def project_onto_plane(v: VectorLike, normal: VectorLike) -> np.ndarray:
    """Remove the component of v along normal."""
    vec = as_vector(v)
    n = normalize(normal)
    return vec - np.dot(vec, n) * n


def distance(p: VectorLike, q: VectorLike) -> float:
    return magnitude(subtract(p, q))


def midpoint(points: Iterable[VectorLike]) -> np.ndarray:
    """Centroid of a group of points."""
    stacked = np.array([as_vector(p) for p in points])
    if stacked.size == 0:
        return np.zeros(3)
    return stacked.mean(axis=0)
