import pytest
import torch

from bioanim.datalens import InputLens, OutputLens
from bioanim.pfnn import NUM_CONTROL_POINTS
from bioanim.predictor import PFNNParameters

NUM_TEST_JOINTS = 3
SAMPLE_COUNT = 12
ROOT_SAMPLE_INDEX = 6


def make_params(input_size, output_size, hidden_size=8, y_mean=None, random=False, activation="elu"):
    """parameters for a tiny network. with random=False every weight is zero, so predict() returns y_mean."""
    sizes = [(hidden_size, input_size), (hidden_size, hidden_size), (output_size, hidden_size)]
    generator = torch.Generator().manual_seed(1234)
    weights = []
    biases = []
    for out_size, in_size in sizes:
        if random:
            weights.append(torch.randn(NUM_CONTROL_POINTS, out_size, in_size, generator=generator) * 0.1)
            biases.append(torch.randn(NUM_CONTROL_POINTS, out_size, generator=generator) * 0.1)
        else:
            weights.append(torch.zeros(NUM_CONTROL_POINTS, out_size, in_size))
            biases.append(torch.zeros(NUM_CONTROL_POINTS, out_size))

    return PFNNParameters(
        weights,
        biases,
        x_mean=torch.zeros(input_size),
        x_std=torch.ones(input_size),
        y_mean=torch.zeros(output_size) if y_mean is None else torch.as_tensor(y_mean, dtype=torch.float32),
        y_std=torch.ones(output_size),
        activation=activation,
    )


@pytest.fixture
def layout():
    x_lens = InputLens(SAMPLE_COUNT, NUM_TEST_JOINTS)
    y_lens = OutputLens(SAMPLE_COUNT, NUM_TEST_JOINTS, ROOT_SAMPLE_INDEX)
    return x_lens, y_lens


@pytest.fixture
def params_factory(layout):
    x_lens, y_lens = layout

    def factory(y_mean=None, random=False, activation="elu"):
        return make_params(x_lens.num_cols, y_lens.num_cols, y_mean=y_mean, random=random, activation=activation)

    return factory
