#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Per frame locomotion loop: intent -> trajectory -> predictor -> pose -> phase.
#

from dataclasses import dataclass
import logging
import math
from typing import Optional

import numpy as np

from . import math_util as mu
from .datalens import InputLens, OutputLens
from .environment import IntentSource, NoObstacles, ObstacleQuery, ScriptedIntent
from .errors import ConfigurationError
from .frame import CoordinateFrame
from .gait import GaitVector
from .predictor import MotionPredictor, PFNNParameters
from .skeleton import Skeleton
from .trajectory import Trajectory

log = logging.getLogger(__name__)

TURN_ANGLE = math.radians(60.0)  # full stick turn, per update
STAND_VELOCITY_THRESH = 0.1  # target speed below which the character blends to standing
STAND_EXPONENT = 0.25
JOINT_BLEND = 0.5  # blend between integrated and predicted joint positions
MIN_PHASE_RATE = 0.1  # fraction of the phase delta applied when fully standing
UNIT_SCALE = 100.0  # network features are in centimeters, the controller works in meters


@dataclass
class ControllerSettings:
    target_blending: float = 0.25
    gait_transition: float = 0.25
    trajectory_correction: float = 0.75
    unit_scale: float = UNIT_SCALE

    def __post_init__(self):
        for name in ("target_blending", "gait_transition", "trajectory_correction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
        if self.unit_scale <= 0.0:
            raise ConfigurationError(f"unit_scale must be positive, got {self.unit_scale}")


def stand_amount(stand: float) -> float:
    """how much of the predicted root motion is applied, 0 when fully standing"""
    return max(0.0, 1.0 - stand) ** STAND_EXPONENT


def advance_phase(phase: float, amount: float, phase_delta: float) -> float:
    return mu.repeat(phase + (amount * (1.0 - MIN_PHASE_RATE) + MIN_PHASE_RATE) * phase_delta * mu.TWO_PI, mu.TWO_PI)


class BioAnimation:
    """
    Drives a skeleton from an intent source, one update() per frame.

    The skeleton is written to in place. Its joint positions at construction are read as relative to the
    start pose (start_position, start_direction) and converted to world space once, so after construction
    skeleton.positions() are world space positions.
    """

    predictor: MotionPredictor
    skeleton: Skeleton
    intent: IntentSource
    obstacles: ObstacleQuery
    trajectory: Trajectory
    settings: ControllerSettings
    x_lens: InputLens
    y_lens: OutputLens
    target_direction: np.ndarray  # vec3 on the ground plane
    target_velocity: np.ndarray  # vec3, meters per trajectory window
    phase: float  # [0, 2pi)
    frame_count: int

    def __init__(
        self,
        predictor: MotionPredictor,
        skeleton: Skeleton,
        intent: Optional[IntentSource] = None,
        obstacles: Optional[ObstacleQuery] = None,
        trajectory: Optional[Trajectory] = None,
        settings: Optional[ControllerSettings] = None,
        start_position=(0.0, 0.0, 0.0),
        start_direction=(0.0, 0.0, 1.0),
    ):
        self.predictor = predictor
        self.skeleton = skeleton
        self.intent = intent if intent is not None else ScriptedIntent()
        self.obstacles = obstacles if obstacles is not None else NoObstacles()
        self.trajectory = trajectory if trajectory is not None else Trajectory()
        self.settings = settings if settings is not None else ControllerSettings()

        traj = self.trajectory
        self.x_lens = InputLens(traj.sample_count, skeleton.num_joints)
        self.y_lens = OutputLens(traj.sample_count, skeleton.num_joints, traj.root_sample_index)
        self._layout_checked = False
        if predictor.is_ready:
            self._check_predictor_layout()

        traj.initialize(start_position, start_direction)
        start_frame = traj.root_frame()
        self.target_direction = traj.root.direction.copy()
        self.target_velocity = np.zeros(3)
        self.phase = 0.0
        self.frame_count = 0
        self._not_ready_logged = False

        # start pose relative -> world
        for i, joint in enumerate(skeleton.joints):
            skeleton.set_joint(i, start_frame.relative_position_from(joint.position), np.zeros(3))

        log.info(
            "BioAnimation(joints = %d, samples = %d, input = %d, output = %d)",
            skeleton.num_joints,
            traj.sample_count,
            self.x_lens.num_cols,
            self.y_lens.num_cols,
        )

    def _check_layout(self, input_size: int, output_size: int):
        if input_size != self.x_lens.num_cols:
            raise ConfigurationError(
                f"predictor takes {input_size} inputs, but {self.skeleton.num_joints} joints and "
                f"{self.trajectory.sample_count} samples need {self.x_lens.num_cols}"
            )
        if output_size != self.y_lens.num_cols:
            raise ConfigurationError(
                f"predictor gives {output_size} outputs, but {self.skeleton.num_joints} joints and "
                f"{self.trajectory.sample_count} samples need {self.y_lens.num_cols}"
            )

    def load_predictor(self, params: PFNNParameters):
        """load parameters into the predictor. a layout that does not fit this controller is rejected before loading."""
        self._check_layout(params.input_size, params.output_size)
        self.predictor.load(params)
        self._layout_checked = True
        self._not_ready_logged = False
        log.info("loaded predictor parameters (input %d, output %d)", params.input_size, params.output_size)

    def _check_predictor_layout(self):
        if self._layout_checked:
            return
        self._check_layout(self.predictor.input_size, self.predictor.output_size)
        self._layout_checked = True

    @property
    def root(self) -> CoordinateFrame:
        return self.trajectory.root_frame()

    def root_matrix(self) -> np.ndarray:
        return self.root.matrix()

    def update(self) -> bool:
        """advance one frame. returns False and leaves everything untouched when the predictor is not ready."""
        if not self.predictor.is_ready:
            if not self._not_ready_logged:
                log.debug("predictor not ready, skipping update")
                self._not_ready_logged = True
            return False
        self._check_predictor_layout()

        traj = self.trajectory
        self._update_target()
        self._update_gait()

        traj.predict_future(self.target_velocity, self.target_direction)
        traj.apply_collision_correction(traj.root_index + 1, self.obstacles)

        current_root = traj.root_frame()
        self._encode_input(current_root)
        self.predictor.predict(self.phase)
        y = self.predictor.output

        traj.shift_past()

        amount = stand_amount(traj.root.gait.stand)
        new_root = self._update_root(y, current_root, amount)
        self._update_future(y, new_root)
        traj.apply_collision_correction(traj.root_index, self.obstacles)

        self._update_pose(y, current_root)

        self.phase = advance_phase(self.phase, amount, self.y_lens.phase_delta.get(y, 0)[0])
        traj.previous = current_root
        self.frame_count += 1
        return True

    def _update_target(self):
        s = self.settings
        turn = self.intent.query_turn()
        move = self.intent.query_move()

        turned = self.trajectory.root_frame().rotated(turn * TURN_ANGLE)
        self.target_direction = mu.lerp(self.target_direction, turned.forward, s.target_blending)

        look = CoordinateFrame.from_direction(np.zeros(3), self.target_direction)
        desired = mu.normalize_or_zero(look.relative_direction_from(np.array([move[0], 0.0, move[1]])))
        self.target_velocity = mu.lerp(self.target_velocity, desired, s.target_blending)

    def _update_gait(self):
        speed = np.linalg.norm(self.target_velocity)
        root_gait = self.trajectory.root.gait
        jog = self.intent.query_jog()

        target = GaitVector(
            stand=1.0 - float(np.clip(speed / STAND_VELOCITY_THRESH, 0.0, 1.0)),
            crouch=self.intent.query_crouch(),
            jump=root_gait.jump,
            bump=0.0,
        )
        if speed < STAND_VELOCITY_THRESH:
            target.walk = 0.0
            target.jog = 0.0
        else:
            target.walk = 1.0 - jog
            target.jog = jog
        root_gait.blend_toward(target, self.settings.gait_transition)

    def _encode_input(self, current_root: CoordinateFrame):
        traj = self.trajectory
        lens = self.x_lens
        scale = self.settings.unit_scale
        x = np.zeros(lens.num_cols)

        half_width = traj.width / 2.0
        for k in range(traj.sample_count):
            point = traj.sampled_point(k)
            pos = current_root.relative_position_to(point.position)
            d = current_root.relative_direction_to(point.direction)
            lens.traj_pos.set(x, k, [scale * pos[0], scale * pos[2]])
            lens.traj_dir.set(x, k, [d[0], d[2]])
            lens.gait.set(x, k, point.gait.as_array())

            index = k * traj.density
            root_y = current_root.position[1]
            lens.heights.set(
                x,
                k,
                [
                    scale * (traj.project(index, half_width)[1] - root_y),
                    scale * (point.height - root_y),
                    scale * (traj.project(index, -half_width)[1] - root_y),
                ],
            )

        previous = traj.previous
        for j, joint in enumerate(self.skeleton.joints):
            lens.joint_pos.set(x, j, scale * previous.relative_position_to(joint.position))
            lens.joint_vel.set(x, j, scale * previous.relative_direction_to(joint.velocity))

        for i in range(lens.num_cols):
            self.predictor.set_input(i, x[i])

    def _update_root(self, y: np.ndarray, current_root: CoordinateFrame, amount: float) -> CoordinateFrame:
        traj = self.trajectory
        root = traj.root
        vel = self.y_lens.root_vel.get(y, 0)
        displacement = amount * np.array([vel[0], 0.0, vel[1]]) / self.settings.unit_scale

        root.set_position(current_root.relative_position_from(displacement), traj.terrain)
        yaw_rot = mu.quat_from_angle_axis(amount * -self.y_lens.root_angvel.get(y, 0)[0], mu.UP)
        root.set_direction(mu.quat_rotate(yaw_rot, root.direction))
        new_root = traj.root_frame()

        # future points ride along with the root
        carry = new_root.relative_direction_from(displacement)
        for i in range(traj.root_index + 1, traj.point_count):
            point = traj.points[i]
            point.set_position(point.position + carry, traj.terrain)

        return new_root

    def _update_future(self, y: np.ndarray, new_root: CoordinateFrame):
        traj = self.trajectory
        lens = self.y_lens
        scale = self.settings.unit_scale
        correction = self.settings.trajectory_correction
        last = lens.traj_count - 1

        for i in range(traj.root_index + 1, traj.point_count):
            k = min(i // traj.density - traj.root_sample_index, last)
            k_next = min(k + 1, last)
            m = mu.repeat((i - traj.root_index) / traj.density, 1.0)

            pos = mu.lerp(lens.traj_pos.get(y, k), lens.traj_pos.get(y, k_next), m)
            d = mu.lerp(lens.traj_dir.get(y, k), lens.traj_dir.get(y, k_next), m)

            point = traj.points[i]
            predicted_pos = new_root.relative_position_from(np.array([pos[0] / scale, 0.0, pos[1] / scale]))
            predicted_dir = new_root.relative_direction_from(mu.normalize_or_zero(np.array([d[0], 0.0, d[1]])))
            point.set_position(mu.lerp(point.position, predicted_pos, correction), traj.terrain)
            point.set_direction(mu.lerp(point.direction, predicted_dir, correction))

    def _update_pose(self, y: np.ndarray, current_root: CoordinateFrame):
        lens = self.y_lens
        scale = self.settings.unit_scale
        for j, joint in enumerate(self.skeleton.joints):
            pos = lens.joint_pos.get(y, j) / scale
            vel = lens.joint_vel.get(y, j) / scale
            integrated = current_root.relative_position_to(joint.position) + vel
            self.skeleton.set_joint(
                j,
                current_root.relative_position_from(mu.lerp(integrated, pos, JOINT_BLEND)),
                current_root.relative_direction_from(vel),
            )

    def snapshot(self) -> dict:
        """read only view of the whole character state, for an external visualizer"""
        root_matrix = self.root_matrix()
        root_matrix.flags.writeable = False
        return {
            "frame": self.frame_count,
            "phase": self.phase,
            "root": root_matrix,
            "trajectory": self.trajectory.snapshot(),
            "skeleton": self.skeleton.snapshot(),
        }
