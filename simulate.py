#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Headless run of the locomotion controller with a scripted intent.
#
# usage: python simulate.py PARAMS_FILE [BVH_FILE] [NUM_FRAMES]
#

import os
import sys

import bvh
import numpy as np
from tqdm import trange

import bioanim
from bioanim.gait import GAIT_NAMES

OUTPUT_DIR = "output"
NUM_FRAMES = 600
PRINT_EVERY = 60
DEBUG_LENS = False

# (start frame, turn, move, crouch, jog)
INTENT_SCRIPT = [
    (0, 0.0, (0.0, 0.0), 0.0, 0.0),
    (60, 0.0, (0.0, 1.0), 0.0, 0.0),
    (240, 0.5, (0.0, 1.0), 0.0, 0.0),
    (300, 0.0, (0.0, 1.0), 0.0, 1.0),
    (420, 0.0, (0.0, 1.0), 1.0, 0.0),
    (540, 0.0, (0.0, 0.0), 0.0, 0.0),
]


def load_skeleton(bvh_filename, num_joints):
    if bvh_filename is None:
        return bioanim.Skeleton.from_joint_count(num_joints)
    with open(bvh_filename) as f:
        mocap = bvh.Bvh(f.read())
    skeleton = bioanim.Skeleton.from_bvh(mocap)
    print(f"skeleton from {bvh_filename}, {skeleton.num_joints} joints")
    for i in range(skeleton.num_joints):
        parent = skeleton.get_parent_index(i)
        parent_name = skeleton.get_joint_name(parent) if parent >= 0 else "-"
        print(f"    {i}: {skeleton.get_joint_name(i)} (parent {parent_name})")
    return skeleton


if __name__ == "__main__":

    if len(sys.argv) < 2:
        print("usage: python simulate.py PARAMS_FILE [BVH_FILE] [NUM_FRAMES]")
        sys.exit(1)

    params_filename = sys.argv[1]
    bvh_filename = sys.argv[2] if len(sys.argv) > 2 and sys.argv[2].endswith(".bvh") else None
    num_frames = int(sys.argv[-1]) if len(sys.argv) > 2 and sys.argv[-1].isdigit() else NUM_FRAMES

    params = bioanim.load_parameters(params_filename)
    predictor = bioanim.MotionPredictor()
    print(f"PFNN(in_features = {params.input_size}, out_features = {params.output_size}, activation = {params.activation})")

    trajectory = bioanim.Trajectory()
    num_joints = bioanim.InputLens.joint_count_for(params.input_size, trajectory.sample_count)
    skeleton = load_skeleton(bvh_filename, num_joints)

    intent = bioanim.ScriptedIntent()
    controller = bioanim.BioAnimation(predictor, skeleton, intent=intent, trajectory=trajectory)
    controller.load_predictor(params)

    root_path = []
    script_index = 0
    for frame in trange(num_frames):
        if script_index < len(INTENT_SCRIPT) and INTENT_SCRIPT[script_index][0] == frame:
            _, turn, move, crouch, jog = INTENT_SCRIPT[script_index]
            intent.set(turn, move, crouch, jog)
            script_index += 1

        controller.update()
        root_path.append(controller.root.position.copy())

        if DEBUG_LENS:
            controller.x_lens.print(predictor.x)

        if frame % PRINT_EVERY == 0:
            gait = trajectory.root.gait
            gait_str = ", ".join([f"{name} = {getattr(gait, name):.2f}" for name in GAIT_NAMES])
            print(f"frame {frame}: root = {controller.root.position}, phase = {controller.phase:.3f}, {gait_str}")

    os.makedirs(OUTPUT_DIR, exist_ok=True)
    root_path_filename = os.path.join(OUTPUT_DIR, "root_path.npy")
    np.save(root_path_filename, np.array(root_path))
    print(f"saved {root_path_filename}")
