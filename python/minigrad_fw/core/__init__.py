# minigrad_fw/core/__init__.py
from .tensor import Tensor, Parameter, tensor
from .autograd import Node, backward, detach, grad_enabled, no_grad, zero_grad
from .gradcheck import gradcheck, numerical_grad
from . import functional

__all__ = [
    "Tensor",
    "Parameter",
    "tensor",
    "Node",
    "backward",
    "detach",
    "zero_grad",
    "no_grad",
    "grad_enabled",
    "gradcheck",
    "numerical_grad",
    "functional",
]
