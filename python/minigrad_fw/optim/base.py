# minigrad_fw/optim/base.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ..core.tensor import Tensor
from ..errors import NoGradientError


class Optimizer:
    """
    Holds references (not copies) to an ordered list of parameters.
    Per-parameter state is keyed by the parameter's index in that list.
    """

    def __init__(self, params: Iterable[Tensor], lr: float):
        self.params: List[Tensor] = list(params)

        # sanity
        if len(self.params) == 0:
            raise ValueError("Optimizer got an empty parameter list")
        for p in self.params:
            if not isinstance(p, Tensor):
                raise TypeError(f"Optimizer expects Tensor params, got {type(p)}")
        if len({id(p) for p in self.params}) != len(self.params):
            raise ValueError("Optimizer got the same parameter more than once")
        if not lr > 0.0:
            raise ValueError(f"Invalid learning rate: {lr} (must be > 0)")

        self.lr = float(lr)

    def zero_grad(self, set_to_none: bool = True) -> None:
        for p in self.params:
            p.zero_grad(set_to_none=set_to_none)

    def step(self) -> None:
        raise NotImplementedError

    def _trainable(self):
        """
        Yield (index, param, grad payload) for every param with requires_grad.
        Raises NoGradientError if backward() has not filled a grad since the last zero_grad().
        """
        for i, p in enumerate(self.params):
            if not p.requires_grad:
                continue
            if p.grad is None:
                label = f"'{p.name}'" if p.name else f"#{i}"
                raise NoGradientError(
                    f"{type(self).__name__}.step: parameter {label} has no grad "
                    "(call backward() after zero_grad() before step())"
                )
            yield i, p, p.grad.data

    # ----------------------------
    # checkpointing
    # ----------------------------
    def state_dict(self) -> Dict[str, Any]:
        # minimal: store hyperparams + (optional) per-param state keyed by index
        return {"type": type(self).__name__, "lr": self.lr, "param_count": len(self.params)}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        if state.get("type") != type(self).__name__:
            raise ValueError(f"state_dict type mismatch: {state.get('type')}")
        if state.get("param_count", len(self.params)) != len(self.params):
            raise ValueError(
                f"state_dict param_count mismatch: {state.get('param_count')} vs {len(self.params)}"
            )
        self.lr = float(state.get("lr", self.lr))
