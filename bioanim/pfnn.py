#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#

import math
from typing import Tuple

import torch
import torch.nn as nn
import torch.nn.functional as F


NUM_QUADRANTS = 4
NUM_CONTROL_POINTS = 4
NUM_LAYERS = 3

ACTIVATIONS = {"elu": F.elu, "relu": F.relu}

# control points (P_i-1, P_i, P_i+1, P_i+2) used in each quadrant of the phase circle
CONTROL_POINT_INDICES = [[3, 0, 1, 2], [0, 1, 2, 3], [1, 2, 3, 0], [2, 3, 0, 1]]


def catmull_rom_basis(device=None, dtype=None) -> torch.Tensor:
    return 0.5 * torch.tensor(
        [[-1.0, 3.0, -3.0, 1.0], [2.0, -5.0, 4.0, -1.0], [-1.0, 0.0, 1.0, 0.0], [0.0, 2.0, 0.0, 0.0]],
        device=device,
        dtype=dtype,
    )


class PhaseLinear(nn.Module):
    in_features: int
    out_features: int
    basis: torch.Tensor
    weights: torch.Tensor
    biases: torch.Tensor

    def __init__(self, in_features: int, out_features: int, basis: torch.Tensor, device=None, dtype=None):
        factory_kwargs = {"device": device, "dtype": dtype}
        super().__init__()

        self.basis = basis
        self.in_features = in_features
        self.out_features = out_features

        # allocate NUM_CONTROL_POINTS sets of weights and biases
        self.weights = nn.Parameter(torch.empty((NUM_CONTROL_POINTS, out_features, in_features), **factory_kwargs))
        self.biases = nn.Parameter(torch.empty((NUM_CONTROL_POINTS, out_features), **factory_kwargs))
        self.register_buffer(
            "control_point_indices", torch.tensor(CONTROL_POINT_INDICES, device=device), persistent=False
        )

        # Initialize weights and biases
        self.reset_parameters()

    def reset_parameters(self):
        for i in range(NUM_CONTROL_POINTS):
            # taken from torch.nn.Linear.reset_parameters
            nn.init.kaiming_uniform_(self.weights[i], a=math.sqrt(5))
            fan_in, _ = nn.init._calculate_fan_in_and_fan_out(self.weights[i])
            bound = 1 / math.sqrt(fan_in) if fan_in > 0 else 0
            nn.init.uniform_(self.biases[i], -bound, bound)

    def phase_function(self, phase: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        B, M, N = phase.shape[0], self.in_features, self.out_features

        assert self.weights.shape == (NUM_CONTROL_POINTS, N, M)
        assert self.biases.shape == (NUM_CONTROL_POINTS, N)
        assert B > 0

        # Use a Catmull-Rom splines to interpolate between the control points in a circle.
        # phase is is between 0 and 2pi, each quarter of the circle is one spline segment with t in [0, 1].
        quadrant_len = 2 * math.pi / NUM_QUADRANTS
        scaled = phase / quadrant_len

        # float32 rounding can put a phase just below 2pi onto the upper bound
        quadrant = torch.clamp(torch.floor(scaled).long(), 0, NUM_QUADRANTS - 1)
        t = scaled - quadrant
        tt = torch.stack([t**3, t**2, t, torch.ones_like(t)], dim=-1)
        coeffs = tt @ self.basis
        assert coeffs.shape == (B, NUM_CONTROL_POINTS), coeffs.shape

        indices = self.control_point_indices[quadrant]
        w = torch.einsum("bk,bknm->bnm", coeffs, self.weights[indices])
        b = torch.einsum("bk,bkn->bn", coeffs, self.biases[indices])

        assert w.shape == (B, N, M), w.shape
        assert b.shape == (B, N), b.shape

        return w, b

    def forward(self, input: torch.Tensor, phase: torch.Tensor) -> torch.Tensor:

        w, b = self.phase_function(phase)

        B = input.shape[0]
        N = self.in_features
        M = self.out_features

        XX = input.unsqueeze(1)
        AA = torch.transpose(w, 1, 2)
        BB = b.unsqueeze(1)

        assert XX.shape == (B, 1, N)
        assert AA.shape == (B, N, M)

        # batched version of input @ w^T + b
        result = torch.bmm(XX, AA) + BB

        assert result.shape == (B, 1, M)

        return result.squeeze(1)


class PFNN(nn.Module):
    def __init__(self, in_features: int, out_features: int, hidden_features: int = 512, activation: str = "relu", device=None):
        super(PFNN, self).__init__()

        if activation not in ACTIVATIONS:
            raise ValueError(f"unknown activation '{activation}', expected one of {list(ACTIVATIONS)}")
        self.activation = activation
        self.act = ACTIVATIONS[activation]

        self.basis = catmull_rom_basis(device=device)

        self.fc1 = PhaseLinear(in_features, hidden_features, self.basis, device=device)
        self.fc2 = PhaseLinear(hidden_features, hidden_features, self.basis, device=device)
        self.fc3 = PhaseLinear(hidden_features, out_features, self.basis, device=device)

    def forward(self, x: torch.Tensor, phase: torch.Tensor) -> torch.Tensor:
        x = self.act(self.fc1(x, phase))
        x = self.act(self.fc2(x, phase))
        x = self.fc3(x, phase)
        return x
