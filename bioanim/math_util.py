#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#

import math
import numpy as np

DEADSPOT_THRESH = 0.15
TWO_PI = 2.0 * math.pi
UP = np.array([0.0, 1.0, 0.0])


def normalize_or_zero(v: np.ndarray) -> np.ndarray:
    """a zero length vector stays zero"""
    v = np.asarray(v, dtype=np.float64)
    norm = np.linalg.norm(v)
    if norm > 1e-8:
        return v / norm
    else:
        return np.zeros(v.shape)


def limit(v: np.ndarray, max_len: float = 1.0) -> np.ndarray:
    norm = np.linalg.norm(v)
    if norm > max_len:
        return v * (max_len / norm)
    return v


def deadspot(val: float) -> float:
    if np.abs(val) > DEADSPOT_THRESH:
        return val
    else:
        return 0


def lerp(a, b, t: float):
    return a * (1.0 - t) + b * t


def repeat(value: float, length: float) -> float:
    """wrap value into [0, length)"""
    result = value - math.floor(value / length) * length
    # floor can leave result == length when value is a tiny negative number
    if result >= length or result < 0.0:
        result = 0.0
    return result


def ground(v: np.ndarray) -> np.ndarray:
    """project a vector onto the ground plane"""
    return np.array([v[0], 0.0, v[2]], dtype=np.float64)


def yaw_from_direction(direction: np.ndarray) -> float:
    # forward is +z, so a yaw of 0 looks down the z axis
    return math.atan2(direction[0], direction[2])


def build_mat_from_quat(mat, quat):
    x, y, z, w = quat

    # Compute the matrix elements
    mat[0] = [
        1 - 2 * y**2 - 2 * z**2,
        2 * x * y - 2 * z * w,
        2 * x * z + 2 * y * w,
        0,
    ]
    mat[1] = [
        2 * x * y + 2 * z * w,
        1 - 2 * x**2 - 2 * z**2,
        2 * y * z - 2 * x * w,
        0,
    ]
    mat[2] = [
        2 * x * z - 2 * y * w,
        2 * y * z + 2 * x * w,
        1 - 2 * x**2 - 2 * y**2,
        0,
    ]
    mat[3] = [0, 0, 0, 1]
    return mat


def quat_conj(q: np.ndarray) -> np.ndarray:
    return np.array([-q[0], -q[1], -q[2], q[3]])


def quat_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    quaternion multiplication
    """
    x1, y1, z1, w1 = a[0], a[1], a[2], a[3]
    x2, y2, z2, w2 = b[0], b[1], b[2], b[3]

    w = w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2
    x = w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2
    y = w1 * y2 + y1 * w2 + z1 * x2 - x1 * z2
    z = w1 * z2 + z1 * w2 + x1 * y2 - y1 * x2

    return np.array([x, y, z, w])


def quat_rotate(q: np.ndarray, vector: np.ndarray) -> np.ndarray:
    vq = np.array([vector[0], vector[1], vector[2], 0])
    return quat_mul(quat_mul(q, vq), quat_conj(q))[0:3]


def quat_from_angle_axis(theta: float, axis: np.ndarray) -> np.ndarray:
    axis = axis / np.linalg.norm(axis)
    if np.abs(theta) < 1e-6:
        return np.array([0.0, 0.0, 0.0, 1.0])
    half_theta = theta * 0.5
    img = math.sin(half_theta) * axis
    return np.array([img[0], img[1], img[2], math.cos(half_theta)])
