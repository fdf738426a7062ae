#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Ground plane coordinate frame: a position plus a rotation about world up.
# Used to express trajectory samples and joints relative to the character root.
#

import numpy as np

from . import math_util as mu


class CoordinateFrame:
    """position and yaw of a character on the ground plane"""

    position: np.ndarray  # vec3
    rotation: np.ndarray  # quat xyzw, rotation about world up only
    yaw: float  # radians, 0 looks down +z

    def __init__(self, position, yaw: float = 0.0):
        self.position = np.array(position, dtype=np.float64)
        self.position.flags.writeable = False
        self.yaw = float(yaw)
        self.rotation = mu.quat_from_angle_axis(self.yaw, mu.UP)
        self.rotation.flags.writeable = False
        self._rot_mat = mu.build_mat_from_quat(np.eye(4), self.rotation)[0:3, 0:3]

    @classmethod
    def from_direction(cls, position, direction) -> "CoordinateFrame":
        return cls(position, mu.yaw_from_direction(direction))

    @property
    def forward(self) -> np.ndarray:
        return self._rot_mat[:, 2].copy()

    @property
    def left(self) -> np.ndarray:
        return self._rot_mat[:, 0].copy()

    def rotated(self, angle: float) -> "CoordinateFrame":
        return CoordinateFrame(self.position, self.yaw + angle)

    def relative_position_to(self, position) -> np.ndarray:
        """world space position -> frame space"""
        return self._rot_mat.T @ (np.asarray(position, dtype=np.float64) - self.position)

    def relative_position_from(self, position) -> np.ndarray:
        """frame space position -> world space"""
        return self._rot_mat @ np.asarray(position, dtype=np.float64) + self.position

    def relative_direction_to(self, direction) -> np.ndarray:
        return self._rot_mat.T @ np.asarray(direction, dtype=np.float64)

    def relative_direction_from(self, direction) -> np.ndarray:
        return self._rot_mat @ np.asarray(direction, dtype=np.float64)

    def matrix(self) -> np.ndarray:
        mat = mu.build_mat_from_quat(np.eye(4), self.rotation)
        mat[0:3, 3] = self.position
        return mat

    def __repr__(self):
        return f"CoordinateFrame(position={self.position.tolist()}, yaw={self.yaw:.4f})"
