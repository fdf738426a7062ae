#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#

from dataclasses import astuple, dataclass, fields

import numpy as np

from . import math_util as mu

GAIT_NAMES = ("stand", "walk", "jog", "crouch", "jump", "bump")
NUM_GAITS = len(GAIT_NAMES)


@dataclass
class GaitVector:
    """per trajectory sample blend weights over the locomotion styles, each in [0, 1]"""

    stand: float = 0.0
    walk: float = 0.0
    jog: float = 0.0
    crouch: float = 0.0
    jump: float = 0.0
    bump: float = 0.0

    def blend_toward(self, target: "GaitVector", rate: float):
        # each weight is filtered on its own, there is no sum to one constraint
        for f in fields(self):
            setattr(self, f.name, mu.lerp(getattr(self, f.name), getattr(target, f.name), rate))

    def copy(self) -> "GaitVector":
        return GaitVector(*astuple(self))

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=np.float64)
