import numpy as np
import pytest

from bioanim.gait import GAIT_NAMES, NUM_GAITS, GaitVector


class TestGaitVector:
    def test_defaults_are_zero(self):
        gait = GaitVector()
        np.testing.assert_array_equal(gait.as_array(), np.zeros(NUM_GAITS))

    def test_array_order(self):
        gait = GaitVector(*[0.1 * (i + 1) for i in range(NUM_GAITS)])
        values = gait.as_array()
        for i, name in enumerate(GAIT_NAMES):
            assert values[i] == getattr(gait, name)

    def test_blend_toward(self):
        gait = GaitVector(stand=1.0)
        gait.blend_toward(GaitVector(walk=1.0), 0.25)
        assert gait.stand == pytest.approx(0.75)
        assert gait.walk == pytest.approx(0.25)

    def test_blend_stays_in_unit_range(self):
        gait = GaitVector()
        targets = [GaitVector(walk=1.0, jog=1.0), GaitVector(stand=1.0), GaitVector(crouch=1.0, bump=1.0)]
        for i in range(200):
            gait.blend_toward(targets[i % len(targets)], 0.25)
            values = gait.as_array()
            assert np.all(values >= 0.0) and np.all(values <= 1.0)

    def test_no_sum_to_one(self):
        gait = GaitVector()
        for _ in range(100):
            gait.blend_toward(GaitVector(walk=1.0, jog=1.0, crouch=1.0), 0.5)
        assert gait.as_array().sum() == pytest.approx(3.0)

    def test_copy_is_independent(self):
        gait = GaitVector(jog=0.5)
        other = gait.copy()
        other.jog = 1.0
        assert gait.jog == 0.5
