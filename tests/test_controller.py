import math

import numpy as np
import pytest

from bioanim import math_util as mu
from bioanim.controller import BioAnimation, ControllerSettings, advance_phase, stand_amount
from bioanim.environment import ScriptedIntent, WallObstacles
from bioanim.errors import ConfigurationError
from bioanim.predictor import MotionPredictor
from bioanim.skeleton import Skeleton
from conftest import NUM_TEST_JOINTS, make_params

JOINT_POSITIONS = [[0.0, 1.0, 0.0], [0.1, 0.5, 0.0], [-0.1, 0.5, 0.0]]


def make_controller(params_factory, layout, intent=None, obstacles=None, settings=None, y_overrides=None):
    _, y_lens = layout
    y_mean = np.zeros(y_lens.num_cols)
    y_mean[y_lens.root_vel.columns(0)[1]] = 0.5  # forward, cm per frame
    y_mean[y_lens.phase_delta.columns(0)[0]] = 0.01
    for index, value in (y_overrides or {}).items():
        y_mean[index] = value

    predictor = MotionPredictor(params_factory(y_mean=y_mean))
    skeleton = Skeleton([f"joint{i}" for i in range(NUM_TEST_JOINTS)], positions=JOINT_POSITIONS)
    return BioAnimation(
        predictor,
        skeleton,
        intent=intent if intent is not None else ScriptedIntent(),
        obstacles=obstacles,
        settings=settings,
    )


class TestHelpers:
    def test_stand_amount(self):
        assert stand_amount(0.0) == 1.0
        assert stand_amount(1.0) == 0.0
        assert stand_amount(1.0 + 1e-9) == 0.0
        assert stand_amount(1.0 - 0.0625) == pytest.approx(0.5)

    def test_advance_phase_wraps(self):
        assert advance_phase(6.0, 1.0, 0.1) == pytest.approx(6.0 + 0.2 * math.pi - 2 * math.pi)

    def test_advance_phase_when_standing(self):
        assert advance_phase(0.0, 0.0, 0.5) == pytest.approx(0.1 * 0.5 * 2 * math.pi)

    def test_settings_range(self):
        with pytest.raises(ConfigurationError):
            ControllerSettings(target_blending=1.5)
        with pytest.raises(ConfigurationError):
            ControllerSettings(unit_scale=0.0)


class TestControllerSetup:
    def test_layout_mismatch(self, layout):
        x_lens, y_lens = layout
        predictor = MotionPredictor(make_params(x_lens.num_cols + 6, y_lens.num_cols + 9))
        with pytest.raises(ConfigurationError):
            BioAnimation(predictor, Skeleton.from_joint_count(NUM_TEST_JOINTS))

    def test_layout_checked_after_late_load(self, layout):
        x_lens, y_lens = layout
        predictor = MotionPredictor()
        controller = BioAnimation(predictor, Skeleton.from_joint_count(NUM_TEST_JOINTS))
        predictor.load(make_params(x_lens.num_cols + 6, y_lens.num_cols + 9))
        with pytest.raises(ConfigurationError):
            controller.update()

    def test_load_predictor_rejects_mismatch(self, layout):
        x_lens, y_lens = layout
        predictor = MotionPredictor()
        controller = BioAnimation(predictor, Skeleton.from_joint_count(NUM_TEST_JOINTS))
        with pytest.raises(ConfigurationError):
            controller.load_predictor(make_params(x_lens.num_cols + 6, y_lens.num_cols + 9))
        assert not predictor.is_ready
        assert controller.update() is False

    def test_load_predictor(self, layout):
        x_lens, y_lens = layout
        controller = BioAnimation(MotionPredictor(), Skeleton.from_joint_count(NUM_TEST_JOINTS))
        assert controller.update() is False
        controller.load_predictor(make_params(x_lens.num_cols, y_lens.num_cols))
        assert controller.predictor.is_ready
        assert controller.update() is True
        assert controller.frame_count == 1

    def test_skeleton_moved_to_start_pose(self, params_factory):
        predictor = MotionPredictor(params_factory())
        skeleton = Skeleton([f"joint{i}" for i in range(NUM_TEST_JOINTS)], positions=JOINT_POSITIONS)
        BioAnimation(predictor, skeleton, start_position=(1.0, 0.0, 2.0))
        np.testing.assert_allclose(skeleton.positions(), np.array(JOINT_POSITIONS) + [1.0, 0.0, 2.0])

    def test_not_ready_is_a_no_op(self):
        controller = BioAnimation(MotionPredictor(), Skeleton.from_joint_count(NUM_TEST_JOINTS))
        before = controller.trajectory.snapshot()["positions"].copy()
        for _ in range(3):
            assert controller.update() is False
        assert controller.frame_count == 0
        assert controller.phase == 0.0
        np.testing.assert_array_equal(controller.trajectory.snapshot()["positions"], before)

    def test_start_pose(self, params_factory, layout):
        controller = make_controller(params_factory, layout)
        np.testing.assert_array_equal(controller.root.position, [0.0, 0.0, 0.0])
        np.testing.assert_allclose(controller.skeleton.positions(), JOINT_POSITIONS)
        assert controller.root_matrix().shape == (4, 4)


class TestInputEncoding:
    def test_first_frame_features(self, params_factory, layout):
        x_lens, _ = layout
        controller = make_controller(params_factory, layout)
        controller.update()
        predictor = controller.predictor

        def read(lens, index):
            return [float(predictor.x[c]) for c in lens.columns(index)]

        root_sample = controller.trajectory.root_sample_index
        assert read(x_lens.traj_pos, root_sample) == [0.0, 0.0]
        assert read(x_lens.traj_dir, root_sample) == pytest.approx([0.0, 1.0])
        assert read(x_lens.traj_pos, 0) == [0.0, 0.0]
        assert read(x_lens.heights, root_sample) == [0.0, 0.0, 0.0]
        # joints relative to the start frame, in centimeters
        assert read(x_lens.joint_pos, 0) == pytest.approx([0.0, 100.0, 0.0])
        assert read(x_lens.joint_pos, 1) == pytest.approx([10.0, 50.0, 0.0])
        assert read(x_lens.joint_vel, 2) == [0.0, 0.0, 0.0]

    def test_gait_features_follow_root(self, params_factory, layout):
        x_lens, _ = layout
        controller = make_controller(params_factory, layout, intent=ScriptedIntent(move=(0.0, 1.0)))
        for _ in range(2):
            controller.update()
        root_sample = controller.trajectory.root_sample_index
        gait = [float(controller.predictor.x[c]) for c in x_lens.gait.columns(root_sample)]
        # gait is blended before encoding, the root sample carries the blended value
        assert gait[0] == pytest.approx(controller.trajectory.points[controller.trajectory.root_index - 1].gait.stand)


class TestIdle:
    def test_idle_stays_put(self, params_factory, layout):
        controller = make_controller(params_factory, layout)
        prev = controller.root.position.copy()
        for _ in range(100):
            assert controller.update()
            pos = controller.root.position.copy()
            assert np.linalg.norm(pos - prev) < 0.01
            prev = pos
        assert controller.trajectory.root.gait.stand == pytest.approx(1.0, abs=1e-6)
        assert controller.frame_count == 100

    def test_idle_turn_in_place_keeps_position(self, params_factory, layout):
        controller = make_controller(params_factory, layout, intent=ScriptedIntent(turn=1.0))
        for _ in range(100):
            controller.update()
        assert controller.trajectory.root.gait.stand > 0.99


class TestWalk:
    def test_walk_forward(self, params_factory, layout):
        intent = ScriptedIntent(move=(0.0, 1.0), jog=1.0)
        controller = make_controller(params_factory, layout, intent=intent, settings=ControllerSettings(trajectory_correction=0.0))
        traj = controller.trajectory

        prev_z = controller.root.position[2]
        for _ in range(200):
            controller.update()
            z = controller.root.position[2]
            assert z >= prev_z
            prev_z = z

        assert prev_z > 0.5
        assert traj.root.gait.jog > 0.99
        assert traj.root.gait.walk < 0.01
        assert traj.root.gait.stand < 0.01

        speed = np.linalg.norm(controller.target_velocity)
        assert speed == pytest.approx(1.0, rel=1e-3)
        spacing = np.linalg.norm(traj.points[-1].position - traj.points[-2].position)
        assert spacing == pytest.approx(speed / traj.future_count, rel=0.1)
        np.testing.assert_allclose(traj.root.direction, [0.0, 0.0, 1.0], atol=1e-9)

    def test_moving_weight_never_drops(self, params_factory, layout):
        intent = ScriptedIntent(move=(0.0, 1.0), jog=0.3)
        controller = make_controller(params_factory, layout, intent=intent)
        gait = controller.trajectory.root.gait

        prev_sum = gait.walk + gait.jog
        for _ in range(200):
            controller.update()
            gait = controller.trajectory.root.gait
            moving = gait.walk + gait.jog
            assert moving >= prev_sum - 1e-12
            prev_sum = moving

        assert prev_sum == pytest.approx(1.0, abs=1e-6)
        assert gait.jog == pytest.approx(0.3, abs=1e-6)
        assert gait.walk == pytest.approx(0.7, abs=1e-6)

    def test_past_follows_root(self, params_factory, layout):
        intent = ScriptedIntent(move=(0.0, 1.0))
        controller = make_controller(params_factory, layout, intent=intent)
        for _ in range(80):
            controller.update()
        z = [p.position[2] for p in controller.trajectory.points[: controller.trajectory.root_index + 1]]
        assert all(b >= a for a, b in zip(z, z[1:]))

    def test_phase_stays_in_range(self, params_factory, layout):
        _, y_lens = layout
        intent = ScriptedIntent(move=(0.0, 1.0))
        controller = make_controller(
            params_factory, layout, intent=intent, y_overrides={y_lens.phase_delta.columns(0)[0]: 0.37}
        )
        phases = []
        for _ in range(100):
            controller.update()
            phases.append(controller.phase)
            assert 0.0 <= controller.phase < 2 * math.pi
        # the phase wraps several times
        assert sum(1 for a, b in zip(phases, phases[1:]) if b < a) > 3


class TestObstructed:
    def test_wall_ahead(self, params_factory, layout):
        walls = WallObstacles([((-1.0, 0.6), (1.0, 0.6), 0.1)])
        intent = ScriptedIntent(move=(0.0, 1.0))
        controller = make_controller(
            params_factory, layout, intent=intent, obstacles=walls, settings=ControllerSettings(trajectory_correction=0.0)
        )
        reference = make_controller(
            params_factory, layout, intent=ScriptedIntent(move=(0.0, 1.0)), settings=ControllerSettings(trajectory_correction=0.0)
        )
        for _ in range(60):
            controller.update()
            reference.update()
            for point in controller.trajectory.points:
                assert point.position[2] < 0.55

        assert controller.trajectory.points[-1].position[2] < reference.trajectory.points[-1].position[2]


class TestSnapshot:
    def test_snapshot(self, params_factory, layout):
        controller = make_controller(params_factory, layout, intent=ScriptedIntent(move=(0.0, 1.0)))
        controller.update()
        snap = controller.snapshot()
        assert snap["frame"] == 1
        assert snap["trajectory"]["positions"].shape == (111, 3)
        assert snap["skeleton"]["positions"].shape == (NUM_TEST_JOINTS, 3)
        np.testing.assert_allclose(snap["root"][0:3, 3], controller.root.position)
        with pytest.raises(ValueError):
            snap["root"][0, 0] = 2.0


class TestPhaseHelpers:
    def test_repeat_matches_wrap(self):
        for value in [-7.0, -0.1, 0.0, 3.0, 6.3, 13.0]:
            wrapped = mu.repeat(value, mu.TWO_PI)
            assert 0.0 <= wrapped < mu.TWO_PI
            assert math.isclose(math.cos(wrapped), math.cos(value), abs_tol=1e-9)
