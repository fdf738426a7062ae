#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Rolling window of root trajectory points around the present frame.
# Index 0 is the oldest past point, root_index is the present, the last index is the furthest future point.
# The network only sees every density-th point (the samples).
#

import logging
from typing import Optional

import numpy as np

from . import math_util as mu
from .environment import FlatTerrain, ObstacleQuery, TerrainQuery
from .errors import ConfigurationError
from .frame import CoordinateFrame
from .gait import GaitVector

log = logging.getLogger(__name__)

PAST_POINTS = 60
FUTURE_POINTS = 50
DENSITY = 10
WIDTH = 0.5

# bias exponents for predict_future, direction reacts faster than position near the root.
BIAS_POS = 0.75
BIAS_DIR = 1.25

# probe length and push back distance for collision correction
SAFETY = 0.5


class TrajectoryPoint:
    position: np.ndarray  # vec3
    direction: np.ndarray  # unit vec3 on the ground plane
    gait: GaitVector
    height: float  # terrain height under position

    def __init__(self, position, direction):
        self.position = np.array(position, dtype=np.float64)
        self.direction = np.array([0.0, 0.0, 1.0])
        self.set_direction(direction)
        self.gait = GaitVector()
        self.height = 0.0

    def set_position(self, position, terrain: Optional[TerrainQuery] = None):
        """when terrain is given, the height is re-sampled and the point is snapped onto the ground"""
        self.position = np.array(position, dtype=np.float64)
        if terrain is not None:
            self.height = terrain.sample_height(self.position[0], self.position[2])
            self.position[1] = self.height

    def set_direction(self, direction):
        d = mu.ground(direction)
        norm = np.linalg.norm(d)
        if norm > 1e-8:
            self.direction = d / norm

    def copy_from(self, other: "TrajectoryPoint"):
        self.position = other.position.copy()
        self.direction = other.direction.copy()
        self.gait = other.gait.copy()
        self.height = other.height

    def frame(self) -> CoordinateFrame:
        return CoordinateFrame.from_direction(self.position, self.direction)


class Trajectory:
    points: list[TrajectoryPoint]
    root_index: int
    density: int
    sample_count: int
    width: float
    previous: CoordinateFrame
    terrain: TerrainQuery

    def __init__(
        self,
        past: int = PAST_POINTS,
        future: int = FUTURE_POINTS,
        density: int = DENSITY,
        width: float = WIDTH,
        terrain: Optional[TerrainQuery] = None,
    ):
        if density < 1:
            raise ConfigurationError(f"density must be positive, got {density}")
        if past < density or future < density:
            raise ConfigurationError(f"past ({past}) and future ({future}) must each cover at least one sample")
        if past % density != 0 or future % density != 0:
            raise ConfigurationError(f"past ({past}) and future ({future}) must be multiples of density ({density})")

        self.root_index = past
        self.density = density
        self.width = width
        self.terrain = terrain if terrain is not None else FlatTerrain()
        num_points = past + 1 + future
        self.sample_count = (num_points - 1) // density + 1
        self.points = [TrajectoryPoint(np.zeros(3), [0, 0, 1]) for _ in range(num_points)]
        self.previous = CoordinateFrame(np.zeros(3))

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def future_count(self) -> int:
        return len(self.points) - 1 - self.root_index

    @property
    def root_sample_index(self) -> int:
        return self.root_index // self.density

    @property
    def root(self) -> TrajectoryPoint:
        return self.points[self.root_index]

    def root_frame(self) -> CoordinateFrame:
        return self.root.frame()

    def initialize(self, start_position, start_direction):
        for point in self.points:
            point.set_position(start_position, self.terrain)
            point.set_direction(start_direction)
            point.gait = GaitVector()
        self.previous = self.root_frame()

    def sampled_point(self, sample_index: int) -> TrajectoryPoint:
        if sample_index < 0 or sample_index >= self.sample_count:
            raise IndexError(f"sample index {sample_index} out of range [0, {self.sample_count})")
        return self.points[self.density * sample_index]

    def shift_past(self):
        """every past point ages by one slot, the oldest is discarded"""
        for i in range(self.root_index):
            self.points[i].copy_from(self.points[i + 1])

    def predict_future(self, target_velocity: np.ndarray, target_direction: np.ndarray):
        """
        Ease the future points from their current shape toward a straight extrapolation of target_velocity.
        The further a point is from the root, the more it follows the target.
        """
        target_velocity = np.asarray(target_velocity, dtype=np.float64)
        target_direction = np.asarray(target_direction, dtype=np.float64)
        future = self.future_count
        step = target_velocity / future
        root_gait = self.root.gait

        blend_positions = [None] * self.point_count
        blend_positions[self.root_index] = self.root.position.copy()
        for i in range(self.root_index + 1, self.point_count):
            t = (i - self.root_index) / future
            scale_pos = 1.0 - (1.0 - t) ** BIAS_POS
            scale_dir = 1.0 - (1.0 - t) ** BIAS_DIR

            prev_point, point = self.points[i - 1], self.points[i]
            delta = mu.lerp(point.position - prev_point.position, step, scale_pos)
            blend_positions[i] = blend_positions[i - 1] + delta

            point.set_direction(mu.lerp(point.direction, target_direction, scale_dir))
            point.gait = root_gait.copy()

        for i in range(self.root_index + 1, self.point_count):
            self.points[i].set_position(blend_positions[i], self.terrain)

    def apply_collision_correction(self, start: int, obstacles: ObstacleQuery):
        """
        Probe a short step from each point toward the next one. If the probe is blocked the point
        is pulled back by the same distance, so the trajectory stops short of the obstacle.
        """
        assert start >= 1, "collision correction needs a previous point"
        for i in range(start, self.point_count):
            prev_pos = self.points[i - 1].position
            delta = self.points[i].position - prev_pos
            dist = np.linalg.norm(delta)
            if dist < 1e-8:
                continue
            probe = prev_pos + SAFETY * (delta / dist)
            hit = obstacles.project_if_blocked(prev_pos, probe)
            if not np.array_equal(hit, probe):
                corrected = probe + SAFETY * mu.normalize_or_zero(prev_pos - probe)
                log.debug("trajectory point %d blocked at %s, corrected to %s", i, hit, corrected)
                self.points[i].set_position(corrected, self.terrain)

    def project(self, index: int, distance: float) -> np.ndarray:
        """ground point at a sideways offset from a trajectory point, along the point's local x axis"""
        point = self.points[index]
        p = point.position + distance * point.frame().left
        p[1] = self.terrain.sample_height(p[0], p[2])
        return p

    def snapshot(self) -> dict:
        """read only copy of the window, for an external visualizer"""
        result = {
            "positions": np.array([p.position for p in self.points]),
            "directions": np.array([p.direction for p in self.points]),
            "gaits": np.array([p.gait.as_array() for p in self.points]),
            "heights": np.array([p.height for p in self.points]),
        }
        for value in result.values():
            value.flags.writeable = False
        return result
