#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Named views onto the flat input/output feature vectors of the predictor.
#
# Trajectory blocks are planar: all x components of every sample, then all z components, and so on.
# Joint blocks are interleaved: x, y, z of joint 0, then joint 1, ...
#

from typing import Tuple

import numpy as np

from .gait import NUM_GAITS

MAX_COLUMNS_PER_LINE = 8
NUM_ROOT_COLS = 8  # root vel x, z, angular vel, phase delta, 4 foot contacts
NUM_CONTACTS = 4


def array_fmt(array: np.ndarray):
    assert array.ndim == 1
    return "[" + (", ".join(map(lambda x: f"{x:10.3f}", array.tolist()))) + " ]"


class ColumnLens:
    size: int
    indices: list[int]
    stride: int  # distance between components of one element

    def __init__(self, size: int, indices: list[int], stride: int = 1):
        self.size = size
        self.indices = indices
        self.stride = stride

    def __len__(self):
        return len(self.indices)

    def columns(self, index: int) -> list[int]:
        start = self.indices[index]
        return [start + c * self.stride for c in range(self.size)]

    def get(self, data: np.ndarray, index: int) -> np.ndarray:
        start = self.indices[index]
        return data[start : start + self.size * self.stride : self.stride]

    def set(self, data: np.ndarray, index: int, value):
        start = self.indices[index]
        data[start : start + self.size * self.stride : self.stride] = value


def build_column_indices(start: int, stride: int, repeat: int = 1) -> Tuple[int, list[int]]:
    indices = [i * stride + start for i in range(repeat)]
    offset = repeat * stride + start
    return offset, indices


def build_planar_lens(offset: int, size: int, count: int) -> Tuple[int, ColumnLens]:
    _, indices = build_column_indices(offset, 1, count)
    return offset + size * count, ColumnLens(size, indices, stride=count)


def build_interleaved_lens(offset: int, size: int, count: int) -> Tuple[int, ColumnLens]:
    next_offset, indices = build_column_indices(offset, size, count)
    return next_offset, ColumnLens(size, indices)


class _Lens:
    def print(self, data: np.ndarray):
        for attr_name, attr_type in type(self).__annotations__.items():
            if attr_type == ColumnLens:
                lens = self.__dict__[attr_name]
                print(f"    {attr_name} =")
                array_strings = [array_fmt(np.asarray(lens.get(data, i), dtype=np.float64)) for i in range(len(lens))]
                arrays_per_line = max(1, MAX_COLUMNS_PER_LINE // lens.size)
                for i in range(0, len(array_strings), arrays_per_line):
                    print("        " + (", ".join(array_strings[i : i + arrays_per_line])))


class InputLens(_Lens):
    traj_pos: ColumnLens  # (x, z) relative to the present root
    traj_dir: ColumnLens  # (x, z) relative to the present root
    gait: ColumnLens  # stand, walk, jog, crouch, jump, bump
    joint_pos: ColumnLens  # relative to the previous root
    joint_vel: ColumnLens  # relative to the previous root
    heights: ColumnLens  # left probe, center, right probe
    num_cols: int

    def __init__(self, sample_count: int, joint_count: int):
        self.sample_count = sample_count
        self.joint_count = joint_count

        offset = 0
        offset, self.traj_pos = build_planar_lens(offset, 2, sample_count)
        offset, self.traj_dir = build_planar_lens(offset, 2, sample_count)
        offset, self.gait = build_planar_lens(offset, NUM_GAITS, sample_count)
        offset, self.joint_pos = build_interleaved_lens(offset, 3, joint_count)
        offset, self.joint_vel = build_interleaved_lens(offset, 3, joint_count)
        offset, self.heights = build_planar_lens(offset, 3, sample_count)

        self.num_cols = offset

    @staticmethod
    def joint_count_for(num_cols: int, sample_count: int) -> int:
        """inverse of the layout: how many joints a trained input vector of num_cols holds"""
        traj_cols = (4 + NUM_GAITS + 3) * sample_count
        assert (num_cols - traj_cols) % 6 == 0, f"{num_cols} columns do not fit {sample_count} samples"
        return (num_cols - traj_cols) // 6


class OutputLens(_Lens):
    root_vel: ColumnLens  # (x, z) displacement this frame, relative to the root
    root_angvel: ColumnLens
    phase_delta: ColumnLens  # in cycles per frame
    contacts: ColumnLens
    traj_pos: ColumnLens  # samples from the root to the end of the window, relative to the new root
    traj_dir: ColumnLens
    joint_pos: ColumnLens  # relative to the root at the start of the frame
    joint_vel: ColumnLens
    joint_rot: ColumnLens
    num_cols: int

    def __init__(self, sample_count: int, joint_count: int, root_sample_index: int):
        self.joint_count = joint_count
        self.traj_count = sample_count - root_sample_index

        offset = 0
        _, indices = build_column_indices(offset, 1, 1)
        self.root_vel = ColumnLens(2, indices)
        _, indices = build_column_indices(offset + 2, 1, 1)
        self.root_angvel = ColumnLens(1, indices)
        _, indices = build_column_indices(offset + 3, 1, 1)
        self.phase_delta = ColumnLens(1, indices)
        _, indices = build_column_indices(offset + 4, 1, 1)
        self.contacts = ColumnLens(NUM_CONTACTS, indices)

        offset = NUM_ROOT_COLS
        offset, self.traj_pos = build_planar_lens(offset, 2, self.traj_count)
        offset, self.traj_dir = build_planar_lens(offset, 2, self.traj_count)
        offset, self.joint_pos = build_interleaved_lens(offset, 3, joint_count)
        offset, self.joint_vel = build_interleaved_lens(offset, 3, joint_count)
        offset, self.joint_rot = build_interleaved_lens(offset, 3, joint_count)

        self.num_cols = offset
