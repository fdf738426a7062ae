#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Collaborators polled by the controller once per frame:
#   IntentSource  - what the player wants (turn, move, crouch, jog)
#   ObstacleQuery - ground plane collision probe used to correct the trajectory
#   TerrainQuery  - ground height under a point
#

from abc import ABC, abstractmethod
import math
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from . import math_util as mu


class IntentSource(ABC):
    @abstractmethod
    def query_turn(self) -> float:
        """turn amount in [-1, 1]"""

    @abstractmethod
    def query_move(self) -> np.ndarray:
        """move direction (sideways, forward), magnitude <= 1"""

    @abstractmethod
    def query_crouch(self) -> float:
        pass

    @abstractmethod
    def query_jog(self) -> float:
        pass


class ScriptedIntent(IntentSource):
    """intent with directly settable values, used for headless runs and tests"""

    turn: float
    move: np.ndarray  # vec2
    crouch: float
    jog: float

    def __init__(self, turn: float = 0.0, move=(0.0, 0.0), crouch: float = 0.0, jog: float = 0.0):
        self.set(turn, move, crouch, jog)

    def set(self, turn: float = 0.0, move=(0.0, 0.0), crouch: float = 0.0, jog: float = 0.0):
        self.turn = float(np.clip(turn, -1, 1))
        self.move = mu.limit(np.array(move, dtype=np.float64))
        self.crouch = float(np.clip(crouch, 0, 1))
        self.jog = float(np.clip(jog, 0, 1))

    def query_turn(self) -> float:
        return self.turn

    def query_move(self) -> np.ndarray:
        return self.move.copy()

    def query_crouch(self) -> float:
        return self.crouch

    def query_jog(self) -> float:
        return self.jog


class StickIntent(IntentSource):
    """
    intent from a gamepad. left stick moves (up on the stick is forward), right stick x turns,
    triggers crouch and jog. the caller feeds raw axis values every frame.
    """

    left_stick: np.ndarray
    right_stick: np.ndarray
    left_trigger: float
    right_trigger: float

    def __init__(self):
        self.left_stick = np.zeros(2)
        self.right_stick = np.zeros(2)
        self.left_trigger = 0.0
        self.right_trigger = 0.0

    def process(self, left_stick, right_stick, left_trigger: float = 0.0, right_trigger: float = 0.0):
        self.left_stick = np.array([mu.deadspot(left_stick[0]), mu.deadspot(left_stick[1])], dtype=np.float64)
        self.right_stick = np.array([mu.deadspot(right_stick[0]), mu.deadspot(right_stick[1])], dtype=np.float64)
        self.left_trigger = float(np.clip(left_trigger, 0, 1))
        self.right_trigger = float(np.clip(right_trigger, 0, 1))

    def query_turn(self) -> float:
        return float(np.clip(self.right_stick[0], -1, 1))

    def query_move(self) -> np.ndarray:
        return mu.limit(self.left_stick.copy())

    def query_crouch(self) -> float:
        return self.left_trigger

    def query_jog(self) -> float:
        return self.right_trigger


class ObstacleQuery(ABC):
    @abstractmethod
    def project_if_blocked(self, start: np.ndarray, end: np.ndarray) -> np.ndarray:
        """returns end if the segment start -> end is clear, otherwise the first blocking contact point"""


class NoObstacles(ObstacleQuery):
    def project_if_blocked(self, start: np.ndarray, end: np.ndarray) -> np.ndarray:
        return end


def _cross2(a: np.ndarray, b: np.ndarray) -> float:
    return a[0] * b[1] - a[1] * b[0]


def _ray_circle(origin: np.ndarray, delta: np.ndarray, center: np.ndarray, radius: float) -> Optional[float]:
    """smallest t in [0, 1] where origin + t * delta touches the circle"""
    f = origin - center
    c = np.dot(f, f) - radius * radius
    if c <= 0.0:
        return 0.0
    a = np.dot(delta, delta)
    if a == 0.0:
        return None
    b = 2.0 * np.dot(f, delta)
    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return None
    t = (-b - math.sqrt(disc)) / (2.0 * a)
    if 0.0 <= t <= 1.0:
        return t
    return None


def _ray_segment(origin: np.ndarray, delta: np.ndarray, p: np.ndarray, q: np.ndarray) -> Optional[float]:
    """smallest t in [0, 1] where origin + t * delta crosses the segment p -> q"""
    e = q - p
    denom = _cross2(delta, e)
    if abs(denom) < 1e-12:
        return None
    w = p - origin
    t = _cross2(w, e) / denom
    s = _cross2(w, delta) / denom
    if 0.0 <= t <= 1.0 and 0.0 <= s <= 1.0:
        return t
    return None


def _point_segment_distance(point: np.ndarray, p: np.ndarray, q: np.ndarray) -> float:
    e = q - p
    len_sq = np.dot(e, e)
    if len_sq == 0.0:
        return float(np.linalg.norm(point - p))
    s = np.clip(np.dot(point - p, e) / len_sq, 0.0, 1.0)
    return float(np.linalg.norm(point - (p + s * e)))


class _GroundObstacles(ObstacleQuery):
    """obstacles are extruded infinitely along world up, so only the xz plane matters"""

    def project_if_blocked(self, start: np.ndarray, end: np.ndarray) -> np.ndarray:
        origin = np.array([start[0], start[2]], dtype=np.float64)
        delta = np.array([end[0] - start[0], end[2] - start[2]], dtype=np.float64)
        t = self.first_hit(origin, delta)
        if t is None:
            return end
        return np.asarray(start, dtype=np.float64) + t * (np.asarray(end, dtype=np.float64) - start)

    @abstractmethod
    def first_hit(self, origin: np.ndarray, delta: np.ndarray) -> Optional[float]:
        pass


class CylinderObstacles(_GroundObstacles):
    """vertical cylinders, given as ((x, z), radius)"""

    centers: list[np.ndarray]
    radii: list[float]

    def __init__(self, cylinders: Sequence[Tuple[Sequence[float], float]] = ()):
        self.centers = []
        self.radii = []
        for center, radius in cylinders:
            self.add(center, radius)

    def add(self, center, radius: float):
        self.centers.append(np.array(center, dtype=np.float64))
        self.radii.append(float(radius))

    def first_hit(self, origin: np.ndarray, delta: np.ndarray) -> Optional[float]:
        hits = [_ray_circle(origin, delta, c, r) for c, r in zip(self.centers, self.radii)]
        hits = [t for t in hits if t is not None]
        return min(hits) if hits else None


class WallObstacles(_GroundObstacles):
    """walls on the ground plane, given as ((x0, z0), (x1, z1), width). each wall is a 2d capsule."""

    starts: list[np.ndarray]
    stops: list[np.ndarray]
    widths: list[float]

    def __init__(self, walls: Sequence[Tuple[Sequence[float], Sequence[float], float]] = ()):
        self.starts = []
        self.stops = []
        self.widths = []
        for start, stop, width in walls:
            self.add(start, stop, width)

    def add(self, start, stop, width: float):
        self.starts.append(np.array(start, dtype=np.float64))
        self.stops.append(np.array(stop, dtype=np.float64))
        self.widths.append(float(width))

    def first_hit(self, origin: np.ndarray, delta: np.ndarray) -> Optional[float]:
        best = None
        for p, q, width in zip(self.starts, self.stops, self.widths):
            radius = width * 0.5
            if _point_segment_distance(origin, p, q) <= radius:
                return 0.0

            candidates = [_ray_circle(origin, delta, p, radius), _ray_circle(origin, delta, q, radius)]
            e = q - p
            length = np.linalg.norm(e)
            if length > 0.0:
                n = np.array([-e[1], e[0]]) * (radius / length)
                candidates.append(_ray_segment(origin, delta, p + n, q + n))
                candidates.append(_ray_segment(origin, delta, p - n, q - n))

            for t in candidates:
                if t is not None and (best is None or t < best):
                    best = t
        return best


class TerrainQuery(ABC):
    @abstractmethod
    def sample_height(self, x: float, z: float) -> float:
        pass


class FlatTerrain(TerrainQuery):
    height: float

    def __init__(self, height: float = 0.0):
        self.height = float(height)

    def sample_height(self, x: float, z: float) -> float:
        return self.height


class HeightFunctionTerrain(TerrainQuery):
    """terrain defined by a callable height(x, z)"""

    fn: Callable[[float, float], float]

    def __init__(self, fn: Callable[[float, float], float]):
        self.fn = fn

    def sample_height(self, x: float, z: float) -> float:
        return float(self.fn(x, z))
