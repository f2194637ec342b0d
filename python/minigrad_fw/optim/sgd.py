# minigrad_fw/optim/sgd.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from ..backend import get_backend
from ..core.autograd import no_grad
from ..core.tensor import Tensor
from .base import Optimizer


class SGD(Optimizer):
    """
    Gradient descent, optionally with momentum.

      plain:     p -= lr * g
      momentum:  buf = momentum * buf + (1 - dampening) * g   (first step: buf = g)
                 p -= lr * buf            (nesterov: p -= lr * (g + momentum * buf))

    weight_decay adds weight_decay * p to g before the rule above.
    """

    def __init__(
        self,
        params: Iterable[Tensor],
        lr: float = 1e-3,
        momentum: float = 0.0,
        dampening: float = 0.0,
        nesterov: bool = False,
        weight_decay: float = 0.0,
    ):
        super().__init__(params, lr)
        if momentum < 0.0:
            raise ValueError(f"Invalid momentum value: {momentum}")
        if weight_decay < 0.0:
            raise ValueError(f"Invalid weight_decay value: {weight_decay}")
        if nesterov and (momentum <= 0.0 or dampening != 0.0):
            raise ValueError("Nesterov momentum requires a momentum and zero dampening")

        self.momentum = float(momentum)
        self.dampening = float(dampening)
        self.nesterov = bool(nesterov)
        self.weight_decay = float(weight_decay)

        # param_index -> momentum buffer (allocated up front, zero)
        self.momentum_buffers: Dict[int, Any] = {}
        self._initialized: Dict[int, bool] = {}
        if self.momentum > 0.0:
            backend = get_backend()
            for i, p in enumerate(self.params):
                self.momentum_buffers[i] = backend.zeros_like(p.data)
                self._initialized[i] = False

    def step(self) -> None:
        backend = get_backend()

        # validate every grad before mutating anything
        work = list(self._trainable())

        with no_grad():
            for i, p, g in work:
                if self.weight_decay != 0.0:
                    g = backend.op_call("add_scaled", [g, p.data], {"alpha": self.weight_decay})

                if self.momentum > 0.0:
                    buf = self.momentum_buffers[i]
                    if not self._initialized[i]:
                        backend.op_call_out("copy", [g], [buf])
                        self._initialized[i] = True
                    else:
                        backend.op_call_out(
                            "momentum_update",
                            [buf, g],
                            [buf],
                            {"momentum": self.momentum, "dampening": self.dampening},
                        )
                    if self.nesterov:
                        g = backend.op_call("add_scaled", [g, buf], {"alpha": self.momentum})
                    else:
                        g = buf

                backend.op_call_out("sgd_step", [p.data, g], [p.data], {"lr": self.lr})

    def state_dict(self) -> Dict[str, Any]:
        state = super().state_dict()
        state.update({
            "momentum": self.momentum,
            "dampening": self.dampening,
            "nesterov": self.nesterov,
            "weight_decay": self.weight_decay,
            "momentum_buffers": {
                i: (buf.clone() if self._initialized[i] else None)
                for i, buf in self.momentum_buffers.items()
            },
        })
        return state

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        super().load_state_dict(state)
        self.momentum = float(state.get("momentum", self.momentum))
        self.dampening = float(state.get("dampening", self.dampening))
        self.nesterov = bool(state.get("nesterov", self.nesterov))
        self.weight_decay = float(state.get("weight_decay", self.weight_decay))

        backend = get_backend()
        buffers: Dict[int, Optional[Any]] = state.get("momentum_buffers", {})
        for i, p in enumerate(self.params):
            if i not in self.momentum_buffers:
                self.momentum_buffers[i] = backend.zeros_like(p.data)
            src = buffers.get(i)
            if src is None:
                backend.op_call_out("grad_zero", [self.momentum_buffers[i]], [self.momentum_buffers[i]])
                self._initialized[i] = False
            else:
                backend.op_call_out("copy", [src], [self.momentum_buffers[i]])
                self._initialized[i] = True
