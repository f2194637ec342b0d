# minigrad_fw/optim/adam.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from ..backend import get_backend
from ..core.autograd import no_grad
from ..core.tensor import Tensor
from .base import Optimizer


class Adam(Optimizer):
    """
    Adam (stateful).
    - maintains m, v per param (zero-initialized at construction, keyed by param index)
    - maintains an integer step count shared by all params
    - bias correction: m_hat = m / (1 - beta1^t), v_hat = v / (1 - beta2^t)
    - update: p -= lr * m_hat / (sqrt(v_hat) + eps)
    """

    def __init__(
        self,
        params: Iterable[Tensor],
        lr: float = 1e-3,
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
        weight_decay: float = 0.0,
    ):
        super().__init__(params, lr)
        beta1, beta2 = betas
        if not 0.0 <= beta1 < 1.0:
            raise ValueError(f"Invalid beta parameter at index 0: {beta1}")
        if not 0.0 <= beta2 < 1.0:
            raise ValueError(f"Invalid beta parameter at index 1: {beta2}")
        if eps < 0.0:
            raise ValueError(f"Invalid epsilon value: {eps}")

        self.beta1 = float(beta1)
        self.beta2 = float(beta2)
        self.eps = float(eps)
        self.weight_decay = float(weight_decay)
        self.step_count = 0

        # --- state buffers ---
        backend = get_backend()
        self.m: Dict[int, Any] = {}   # param_index -> first moment
        self.v: Dict[int, Any] = {}   # param_index -> second moment
        for i, p in enumerate(self.params):
            self.m[i] = backend.zeros_like(p.data)
            self.v[i] = backend.zeros_like(p.data)

    def step(self) -> None:
        backend = get_backend()

        # validate every grad before mutating anything
        work = list(self._trainable())

        self.step_count += 1
        bc1 = 1.0 - self.beta1 ** self.step_count
        bc2 = 1.0 - self.beta2 ** self.step_count

        with no_grad():
            for i, p, g in work:
                if self.weight_decay != 0.0:
                    g = backend.op_call("add_scaled", [g, p.data], {"alpha": self.weight_decay})

                backend.op_call_out(
                    "adam_step",
                    [p.data, g, self.m[i], self.v[i]],
                    [p.data, self.m[i], self.v[i]],
                    {
                        "lr": self.lr,
                        "beta1": self.beta1,
                        "beta2": self.beta2,
                        "eps": self.eps,
                        "bc1": bc1,
                        "bc2": bc2,
                    },
                )

    def state_dict(self) -> Dict[str, Any]:
        state = super().state_dict()
        state.update({
            "betas": (self.beta1, self.beta2),
            "eps": self.eps,
            "weight_decay": self.weight_decay,
            "step": self.step_count,
            "m": {i: t.clone() for i, t in self.m.items()},
            "v": {i: t.clone() for i, t in self.v.items()},
        })
        return state

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        super().load_state_dict(state)
        self.beta1, self.beta2 = (float(b) for b in state.get("betas", (self.beta1, self.beta2)))
        self.eps = float(state.get("eps", self.eps))
        self.weight_decay = float(state.get("weight_decay", self.weight_decay))
        self.step_count = int(state.get("step", self.step_count))

        backend = get_backend()
        for key, bufs in (("m", self.m), ("v", self.v)):
            saved = state.get(key) or {}
            for i, buf in bufs.items():
                src = saved.get(i)
                if src is None:
                    backend.op_call_out("grad_zero", [buf], [buf])
                else:
                    backend.op_call_out("copy", [src], [buf])
