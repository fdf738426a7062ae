#
# Copyright (c) 2025 Anthony J. Thibault
# This software is licensed under the MIT License. See LICENSE for more details.
#


class BioAnimError(Exception):
    pass


class ConfigurationError(BioAnimError, ValueError):
    """sizes of the skeleton, trajectory or feature layout disagree with the trained parameters"""


class PredictorStateError(BioAnimError, RuntimeError):
    """predictor used before parameters were loaded, or output read before a prediction ran"""
