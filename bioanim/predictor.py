#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#
# Phase-indexed motion predictor: owns a PFNN plus the normalization statistics it was trained with,
# and the input/output buffers the controller reads and writes one feature at a time.
#

from dataclasses import dataclass, field
import logging
import math
import os
from typing import Optional

import numpy as np
import torch

from .errors import ConfigurationError, PredictorStateError
from .pfnn import ACTIVATIONS, NUM_CONTROL_POINTS, NUM_LAYERS, PFNN

log = logging.getLogger(__name__)

HOLDEN_ACTIVATION = "elu"
CHECKPOINT_ACTIVATION = "relu"


@dataclass
class PFNNParameters:
    """
    Trained network parameters. weights[l] has shape (4, out, in), biases[l] has shape (4, out),
    one entry per phase control point. Treated as read only once built, several predictors may share one.
    """

    weights: list[torch.Tensor]
    biases: list[torch.Tensor]
    x_mean: torch.Tensor
    x_std: torch.Tensor
    y_mean: torch.Tensor
    y_std: torch.Tensor
    x_w: Optional[torch.Tensor] = None  # per column input weighting, ones when absent
    activation: str = HOLDEN_ACTIVATION
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if len(self.weights) != NUM_LAYERS or len(self.biases) != NUM_LAYERS:
            raise ConfigurationError(
                f"expected {NUM_LAYERS} layers, got {len(self.weights)} weights and {len(self.biases)} biases"
            )
        if self.activation not in ACTIVATIONS:
            raise ConfigurationError(f"unknown activation '{self.activation}'")

        self.weights = [w.detach().to(torch.float32) for w in self.weights]
        self.biases = [b.detach().to(torch.float32) for b in self.biases]
        self.x_mean = self.x_mean.detach().to(torch.float32).flatten()
        self.x_std = self.x_std.detach().to(torch.float32).flatten()
        self.y_mean = self.y_mean.detach().to(torch.float32).flatten()
        self.y_std = self.y_std.detach().to(torch.float32).flatten()
        if self.x_w is None:
            self.x_w = torch.ones_like(self.x_mean)
        else:
            self.x_w = self.x_w.detach().to(torch.float32).flatten()

        prev_out = None
        for layer, (w, b) in enumerate(zip(self.weights, self.biases)):
            if w.ndim != 3 or w.shape[0] != NUM_CONTROL_POINTS:
                raise ConfigurationError(f"layer {layer} weights must be (4, out, in), got {tuple(w.shape)}")
            if b.shape != (NUM_CONTROL_POINTS, w.shape[1]):
                raise ConfigurationError(f"layer {layer} biases must be (4, {w.shape[1]}), got {tuple(b.shape)}")
            if prev_out is not None and w.shape[2] != prev_out:
                raise ConfigurationError(f"layer {layer} takes {w.shape[2]} inputs but layer {layer - 1} gives {prev_out}")
            prev_out = w.shape[1]

        for name in ("x_mean", "x_std", "x_w"):
            if getattr(self, name).shape != (self.input_size,):
                raise ConfigurationError(f"{name} has shape {tuple(getattr(self, name).shape)}, expected ({self.input_size},)")
        for name in ("y_mean", "y_std"):
            if getattr(self, name).shape != (self.output_size,):
                raise ConfigurationError(f"{name} has shape {tuple(getattr(self, name).shape)}, expected ({self.output_size},)")

        if self.hidden_size != self.weights[1].shape[1]:
            raise ConfigurationError("both hidden layers must have the same width")

    @property
    def input_size(self) -> int:
        return self.weights[0].shape[2]

    @property
    def output_size(self) -> int:
        return self.weights[-1].shape[1]

    @property
    def hidden_size(self) -> int:
        return self.weights[0].shape[1]

    def state_dict(self) -> dict:
        """in the layout of PFNN.state_dict()"""
        result = {}
        for i, (w, b) in enumerate(zip(self.weights, self.biases)):
            result[f"fc{i + 1}.weights"] = w
            result[f"fc{i + 1}.biases"] = b
        return result


def load_checkpoint(weights_path: str, stats_dir: str, device=None) -> PFNNParameters:
    """
    import the output of the training pipeline: a PFNN state_dict plus the X_mean, X_std, X_w, Y_mean, Y_std
    tensors saved next to it.
    """
    device = device if device is not None else torch.device("cpu")
    state_dict = torch.load(weights_path, weights_only=True, map_location=device)

    def load_stat(name, required=True):
        filename = os.path.join(stats_dir, f"{name}.pth")
        if not os.path.exists(filename):
            if required:
                raise ConfigurationError(f"missing normalization file {filename}")
            return None
        return torch.load(filename, weights_only=True, map_location=device)

    try:
        weights = [state_dict[f"fc{i + 1}.weights"] for i in range(NUM_LAYERS)]
        biases = [state_dict[f"fc{i + 1}.biases"] for i in range(NUM_LAYERS)]
    except KeyError as e:
        raise ConfigurationError(f"{weights_path} is not a PFNN state_dict, missing {e}") from e

    params = PFNNParameters(
        weights,
        biases,
        x_mean=load_stat("X_mean"),
        x_std=load_stat("X_std"),
        y_mean=load_stat("Y_mean"),
        y_std=load_stat("Y_std"),
        x_w=load_stat("X_w", required=False),
        activation=CHECKPOINT_ACTIVATION,
        metadata={"source": os.path.abspath(weights_path)},
    )
    log.info(
        "loaded checkpoint %s (input %d, output %d, hidden %d)",
        weights_path,
        params.input_size,
        params.output_size,
        params.hidden_size,
    )
    return params


def _read_bin(filename: str) -> np.ndarray:
    if not os.path.exists(filename):
        raise ConfigurationError(f"missing parameter file {filename}")
    return np.fromfile(filename, dtype=np.float32)


def load_holden_bins(directory: str) -> PFNNParameters:
    """
    import the published PFNN parameters (cubic mode): Xmean.bin, Xstd.bin, Ymean.bin, Ystd.bin and
    W{layer}_{point:03}.bin / b{layer}_{point:03}.bin, raw little endian float32.
    """
    x_mean = _read_bin(os.path.join(directory, "Xmean.bin"))
    x_std = _read_bin(os.path.join(directory, "Xstd.bin"))
    y_mean = _read_bin(os.path.join(directory, "Ymean.bin"))
    y_std = _read_bin(os.path.join(directory, "Ystd.bin"))

    b0 = _read_bin(os.path.join(directory, "b0_000.bin"))
    hidden_size = b0.shape[0]
    shapes = [(hidden_size, x_mean.shape[0]), (hidden_size, hidden_size), (y_mean.shape[0], hidden_size)]

    weights = []
    biases = []
    for layer, shape in enumerate(shapes):
        w_points = []
        b_points = []
        for i in range(NUM_CONTROL_POINTS):
            w = _read_bin(os.path.join(directory, f"W{layer}_{i:03}.bin"))
            b = _read_bin(os.path.join(directory, f"b{layer}_{i:03}.bin"))
            if w.size != shape[0] * shape[1] or b.size != shape[0]:
                raise ConfigurationError(f"W{layer}_{i:03}.bin / b{layer}_{i:03}.bin do not match {shape}")
            w_points.append(w.reshape(shape))
            b_points.append(b)
        weights.append(torch.from_numpy(np.stack(w_points)))
        biases.append(torch.from_numpy(np.stack(b_points)))

    params = PFNNParameters(
        weights,
        biases,
        x_mean=torch.from_numpy(x_mean),
        x_std=torch.from_numpy(x_std),
        y_mean=torch.from_numpy(y_mean),
        y_std=torch.from_numpy(y_std),
        activation=HOLDEN_ACTIVATION,
        metadata={"source": os.path.abspath(directory)},
    )
    log.info("loaded pfnn bins from %s (input %d, output %d)", directory, params.input_size, params.output_size)
    return params


def save_parameters(params: PFNNParameters, path: str):
    torch.save(
        {
            "state_dict": params.state_dict(),
            "x_mean": params.x_mean,
            "x_std": params.x_std,
            "x_w": params.x_w,
            "y_mean": params.y_mean,
            "y_std": params.y_std,
            "activation": params.activation,
            "metadata": params.metadata,
        },
        path,
    )
    log.info("saved parameters to %s", path)


def load_parameters(path: str, device=None) -> PFNNParameters:
    device = device if device is not None else torch.device("cpu")
    data = torch.load(path, weights_only=True, map_location=device)
    state_dict = data["state_dict"]
    params = PFNNParameters(
        [state_dict[f"fc{i + 1}.weights"] for i in range(NUM_LAYERS)],
        [state_dict[f"fc{i + 1}.biases"] for i in range(NUM_LAYERS)],
        x_mean=data["x_mean"],
        x_std=data["x_std"],
        y_mean=data["y_mean"],
        y_std=data["y_std"],
        x_w=data["x_w"],
        activation=data["activation"],
        metadata=data.get("metadata", {}),
    )
    log.info("loaded parameters %s (input %d, output %d)", path, params.input_size, params.output_size)
    return params


class MotionPredictor:
    params: Optional[PFNNParameters]
    model: Optional[PFNN]
    x: Optional[np.ndarray]  # raw input features, written by the controller
    y: Optional[np.ndarray]  # de-normalized output of the latest prediction

    def __init__(self, params: Optional[PFNNParameters] = None, device=None):
        self.device = device if device is not None else torch.device("cpu")
        self.params = None
        self.model = None
        self.x = None
        self.y = None
        if params is not None:
            self.load(params)

    def load(self, params: PFNNParameters):
        model = PFNN(params.input_size, params.output_size, params.hidden_size, params.activation, device=self.device)
        model.load_state_dict(params.state_dict())
        model.requires_grad_(False)
        model.eval()

        self.params = params
        self.model = model
        self.x = np.zeros(params.input_size, dtype=np.float32)
        self.y = None
        self._x_mean = params.x_mean.to(self.device)
        self._x_scale = (params.x_w / params.x_std).to(self.device)
        self._y_mean = params.y_mean.to(self.device)
        self._y_std = params.y_std.to(self.device)

    @property
    def is_ready(self) -> bool:
        return self.params is not None

    @property
    def input_size(self) -> int:
        return self.params.input_size if self.params is not None else 0

    @property
    def output_size(self) -> int:
        return self.params.output_size if self.params is not None else 0

    def _check_ready(self):
        if not self.is_ready:
            raise PredictorStateError("motion predictor has no parameters loaded")

    def set_input(self, index: int, value: float):
        self._check_ready()
        if index < 0 or index >= self.input_size:
            raise IndexError(f"input index {index} out of range [0, {self.input_size})")
        self.x[index] = value

    def predict(self, phase: float):
        self._check_ready()
        phase = math.fmod(phase, 2 * math.pi)
        if phase < 0.0:
            phase += 2 * math.pi

        with torch.no_grad():
            x = torch.from_numpy(self.x).to(self.device)
            x = (x - self._x_mean) * self._x_scale
            p = torch.tensor([phase], dtype=torch.float32, device=self.device)
            y = self.model(x.unsqueeze(0), p)[0]
            assert y.shape == (self.output_size,), y.shape
            y = y * self._y_std + self._y_mean

        self.y = y.cpu().numpy().astype(np.float64)

    def get_output(self, index: int) -> float:
        if self.y is None:
            raise PredictorStateError("get_output called before predict")
        if index < 0 or index >= self.output_size:
            raise IndexError(f"output index {index} out of range [0, {self.output_size})")
        return float(self.y[index])

    @property
    def output(self) -> np.ndarray:
        """copy of the whole latest prediction"""
        if self.y is None:
            raise PredictorStateError("output read before predict")
        return self.y.copy()
