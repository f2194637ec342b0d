"""
minigrad_fw: reverse-mode autodiff on torch payloads plus SGD/Adam optimizers.

Usage:
    import minigrad_fw as mg

    w = mg.Parameter(1.0, name="w")
    b = mg.Parameter(0.0, name="b")
    opt = mg.optim.SGD([w, b], lr=1e-2)

    loss = ((w * t_u + b - t_c) ** 2).mean()
    opt.zero_grad()
    loss.backward()
    opt.step()
"""
from __future__ import annotations

from .config import FrameworkConfig
from .errors import (
    AutogradError,
    GradcheckError,
    NoGradientError,
    ShapeMismatchError,
    TrainingDivergedError,
    UntrackedRootError,
)
from .backend import get_backend, set_backend
from .core import (
    Node,
    Parameter,
    Tensor,
    backward,
    detach,
    functional,
    grad_enabled,
    gradcheck,
    no_grad,
    tensor,
    zero_grad,
)
from . import optim

__version__ = "0.1.0"

__all__ = [
    "FrameworkConfig",
    "AutogradError",
    "GradcheckError",
    "NoGradientError",
    "ShapeMismatchError",
    "TrainingDivergedError",
    "UntrackedRootError",
    "get_backend",
    "set_backend",
    "Node",
    "Parameter",
    "Tensor",
    "backward",
    "detach",
    "functional",
    "grad_enabled",
    "gradcheck",
    "no_grad",
    "tensor",
    "zero_grad",
    "optim",
]
