#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#

from typing import Optional, Sequence

import bvh
import glm
import numpy as np

from .errors import ConfigurationError


class Joint:
    name: str
    parent: int  # index into the skeleton, -1 for the root
    position: np.ndarray  # world space vec3
    velocity: np.ndarray  # world space vec3, per frame

    def __init__(self, name: str, parent: int = -1, position=None):
        self.name = name
        self.parent = parent
        self.position = np.zeros(3) if position is None else np.array(position, dtype=np.float64)
        self.velocity = np.zeros(3)


class Skeleton:
    """
    Pose sink for the controller. Joint order must match the order the predictor was trained with.
    """

    joints: list[Joint]
    num_joints: int

    def __init__(self, joint_names: Sequence[str], parents: Optional[Sequence[int]] = None, positions=None):
        if parents is not None and len(parents) != len(joint_names):
            raise ConfigurationError(f"{len(joint_names)} joints but {len(parents)} parents")
        if positions is not None and len(positions) != len(joint_names):
            raise ConfigurationError(f"{len(joint_names)} joints but {len(positions)} positions")

        self.joints = []
        for i, name in enumerate(joint_names):
            parent = parents[i] if parents is not None else (i - 1)
            position = positions[i] if positions is not None else None
            self.joints.append(Joint(name, parent, position))
        self.num_joints = len(self.joints)

    @classmethod
    def from_joint_count(cls, num_joints: int) -> "Skeleton":
        return cls([f"joint{i}" for i in range(num_joints)])

    @classmethod
    def from_bvh(cls, mocap: bvh.Bvh, frame: int = 0, scale: float = 0.01) -> "Skeleton":
        """
        joint names, hierarchy and world positions at the given frame. bvh files are usually in centimeters,
        scale converts them to the meters the controller works in.
        """
        joint_names = mocap.get_joints_names()
        parents = [mocap.joint_parent_index(name) for name in joint_names]

        xforms = []
        for name, parent in zip(joint_names, parents):
            channels = mocap.joint_channels(name)
            offset = mocap.joint_offset(name)

            pos = glm.vec3(offset[0], offset[1], offset[2])
            if "Xposition" in channels:
                pos += glm.vec3(
                    mocap.frame_joint_channel(frame, name, "Xposition"),
                    mocap.frame_joint_channel(frame, name, "Yposition"),
                    mocap.frame_joint_channel(frame, name, "Zposition"),
                )

            rot = glm.quat()
            if "Xrotation" in channels:
                x_rot = glm.angleAxis(glm.radians(mocap.frame_joint_channel(frame, name, "Xrotation")), glm.vec3(1, 0, 0))
                y_rot = glm.angleAxis(glm.radians(mocap.frame_joint_channel(frame, name, "Yrotation")), glm.vec3(0, 1, 0))
                z_rot = glm.angleAxis(glm.radians(mocap.frame_joint_channel(frame, name, "Zrotation")), glm.vec3(0, 0, 1))
                rot = z_rot * (y_rot * x_rot)

            m = glm.mat4(rot)
            m[3] = glm.vec4(pos, 1)
            if parent >= 0:
                xforms.append(xforms[parent] * m)
            else:
                xforms.append(m)

        positions = [np.array([x[3][0], x[3][1], x[3][2]], dtype=np.float64) * scale for x in xforms]
        return cls(joint_names, parents, positions)

    def get_joint_name(self, joint_index: int) -> str:
        return self.joints[joint_index].name

    def get_parent_index(self, joint_index: int) -> int:
        return self.joints[joint_index].parent

    def set_joint(self, joint_index: int, position, velocity):
        joint = self.joints[joint_index]
        joint.position = np.array(position, dtype=np.float64)
        joint.velocity = np.array(velocity, dtype=np.float64)

    def positions(self) -> np.ndarray:
        return np.array([joint.position for joint in self.joints]).reshape(self.num_joints, 3)

    def velocities(self) -> np.ndarray:
        return np.array([joint.velocity for joint in self.joints]).reshape(self.num_joints, 3)

    def snapshot(self) -> dict:
        """read only copy of the pose, for an external visualizer"""
        result = {
            "positions": self.positions(),
            "velocities": self.velocities(),
            "parents": np.array([joint.parent for joint in self.joints], dtype=np.int32),
        }
        for value in result.values():
            value.flags.writeable = False
        return result
