# minigrad_fw/core/tensor.py
from __future__ import annotations

from typing import Any, Optional, Tuple

import torch

from ..backend import get_backend
from ..errors import AutogradError


class Tensor:
    """
    data: payload (torch.Tensor)
    creator: Node that produced this Tensor (None for leaf/Parameter/detached)
    grad: Tensor holding the accumulated gradient, or None
    """
    __slots__ = ("data", "requires_grad", "grad", "creator", "name")

    def __init__(self, data: Any, requires_grad: bool = False, creator=None, name: str = ""):
        if isinstance(data, Tensor):
            data = data.data
        self.data = get_backend().as_payload(data)
        self.requires_grad = bool(requires_grad)
        self.grad: Optional["Tensor"] = None
        self.creator = creator
        self.name = name

    # -------------------------
    # metadata
    # -------------------------
    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def dtype(self) -> torch.dtype:
        return self.data.dtype

    @property
    def is_leaf(self) -> bool:
        return self.creator is None

    def numel(self) -> int:
        return self.data.numel()

    def item(self) -> float:
        return float(self.data.item())

    # -------------------------
    # graph control
    # -------------------------
    def zero_grad(self, set_to_none: bool = True) -> None:
        if set_to_none or self.grad is None:
            self.grad = None
            return
        get_backend().op_call_out("grad_zero", [self.grad.data], [self.grad.data])

    def backward(self, grad: Optional["Tensor"] = None) -> None:
        # Late import to avoid cycles
        from .autograd import backward as autograd_backward
        autograd_backward(self, grad)

    def detach(self, requires_grad: bool = False) -> "Tensor":
        """Same payload, no creator: a new leaf."""
        out = Tensor.__new__(Tensor)
        out.data = self.data
        out.requires_grad = bool(requires_grad)
        out.grad = None
        out.creator = None
        out.name = self.name
        return out

    def requires_grad_(self, requires_grad: bool = True) -> "Tensor":
        if self.creator is not None:
            raise AutogradError(
                f"requires_grad_: only leaf tensors can change requires_grad (got output of {self.creator.op})"
            )
        self.requires_grad = bool(requires_grad)
        return self

    # -------------------------
    # operators
    # -------------------------
    def __add__(self, other):
        from . import functional as F
        return F.add(self, other)

    def __radd__(self, other):
        from . import functional as F
        return F.add(other, self)

    def __sub__(self, other):
        from . import functional as F
        return F.sub(self, other)

    def __rsub__(self, other):
        from . import functional as F
        return F.sub(other, self)

    def __mul__(self, other):
        from . import functional as F
        return F.mul(self, other)

    def __rmul__(self, other):
        from . import functional as F
        return F.mul(other, self)

    def __truediv__(self, other):
        from . import functional as F
        return F.div(self, other)

    def __rtruediv__(self, other):
        from . import functional as F
        return F.div(other, self)

    def __neg__(self):
        from . import functional as F
        return F.neg(self)

    def __pow__(self, exponent):
        from . import functional as F
        return F.pow(self, exponent)

    def __matmul__(self, other):
        from . import functional as F
        return F.matmul(self, other)

    def __rmatmul__(self, other):
        from . import functional as F
        return F.matmul(other, self)

    def exp(self) -> "Tensor":
        from . import functional as F
        return F.exp(self)

    def log(self) -> "Tensor":
        from . import functional as F
        return F.log(self)

    def relu(self) -> "Tensor":
        from . import functional as F
        return F.relu(self)

    def sigmoid(self) -> "Tensor":
        from . import functional as F
        return F.sigmoid(self)

    def tanh(self) -> "Tensor":
        from . import functional as F
        return F.tanh(self)

    def sum(self, dim=None, keepdim: bool = False) -> "Tensor":
        from . import functional as F
        return F.sum(self, dim=dim, keepdim=keepdim)

    def mean(self, dim=None, keepdim: bool = False) -> "Tensor":
        from . import functional as F
        return F.mean(self, dim=dim, keepdim=keepdim)

    def __repr__(self) -> str:
        extra = ""
        if self.creator is not None:
            extra = f", creator={self.creator.op}"
        elif self.requires_grad:
            extra = ", requires_grad=True"
        name = f", name={self.name!r}" if self.name else ""
        if self.data.numel() <= 8:
            return f"Tensor({self.data.tolist()!r}{extra}{name})"
        return f"Tensor(shape={self.shape}, dtype={self.dtype}{extra}{name})"


class Parameter(Tensor):
    def __init__(self, data: Any, requires_grad: bool = True, name: str = ""):
        super().__init__(data, requires_grad=requires_grad, creator=None, name=name)


def tensor(data: Any, requires_grad: bool = False, name: str = "") -> Tensor:
    return Tensor(data, requires_grad=requires_grad, name=name)
