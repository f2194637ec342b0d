# minigrad_fw/errors.py
from __future__ import annotations


class AutogradError(RuntimeError):
    """Base class for every error raised by minigrad_fw."""


class UntrackedRootError(AutogradError):
    """backward() called on a value that has no creator and no grad tracking."""


class NoGradientError(AutogradError):
    """Optimizer step on a parameter whose .grad is absent."""


class ShapeMismatchError(AutogradError, ValueError):
    """Operands of an elementary op have incompatible shapes."""


class GradcheckError(AutogradError):
    """Analytic gradient disagrees with the finite-difference estimate."""


class TrainingDivergedError(AutogradError):
    """Loss became NaN/Inf during a training loop."""
