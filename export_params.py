#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Convert trained network parameters into the single file format read by bioanim.load_parameters.
#
# usage:
#   python export_params.py checkpoint WEIGHTS_FILE [STATS_DIR] [OUT_FILE]
#   python export_params.py holden BIN_DIR [OUT_FILE]
#

import os
import sys

import bioanim
from bioanim.pfnn import NUM_CONTROL_POINTS

OUTPUT_DIR = "output"


if __name__ == "__main__":

    if len(sys.argv) < 3 or sys.argv[1] not in ("checkpoint", "holden"):
        print("usage: python export_params.py checkpoint WEIGHTS_FILE [STATS_DIR] [OUT_FILE]")
        print("       python export_params.py holden BIN_DIR [OUT_FILE]")
        sys.exit(1)

    mode = sys.argv[1]
    if mode == "checkpoint":
        weights_filename = sys.argv[2]
        stats_dir = sys.argv[3] if len(sys.argv) > 3 else OUTPUT_DIR
        params = bioanim.load_checkpoint(weights_filename, stats_dir)
        default_name = os.path.splitext(os.path.basename(weights_filename))[0] + "_params.pth"
        out_filename = sys.argv[4] if len(sys.argv) > 4 else os.path.join(OUTPUT_DIR, default_name)
    else:
        params = bioanim.load_holden_bins(sys.argv[2])
        out_filename = sys.argv[3] if len(sys.argv) > 3 else os.path.join(OUTPUT_DIR, "pfnn_params.pth")

    trajectory = bioanim.Trajectory()
    num_joints = bioanim.InputLens.joint_count_for(params.input_size, trajectory.sample_count)

    print(f"INPUT_SIZE = {params.input_size}")
    print(f"OUTPUT_SIZE = {params.output_size}")
    print(f"HIDDEN_SIZE = {params.hidden_size}")
    print(f"NUM_CONTROL_POINTS = {NUM_CONTROL_POINTS}")
    print(f"NUM_JOINTS = {num_joints}")
    print(f"ACTIVATION = {params.activation}")
    for name, param in params.state_dict().items():
        print(f"{name.replace('.', '_').upper()}_SIZE = {tuple(param.shape)}")

    out_dir = os.path.dirname(out_filename)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    bioanim.save_parameters(params, out_filename)
    print(f"saved {out_filename}")
