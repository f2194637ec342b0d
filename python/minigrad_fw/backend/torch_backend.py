# minigrad_fw/backend/torch_backend.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch

from ..config import FrameworkConfig
from ..errors import ShapeMismatchError
from ..utils.profiling import OpProfiler
from .base import Backend


def _sum_to(g: torch.Tensor, shape: Sequence[int]) -> torch.Tensor:
    """Reduce a broadcast gradient back to `shape` (inverse of broadcasting)."""
    shape = tuple(shape)
    if tuple(g.shape) == shape:
        return g
    lead = g.ndim - len(shape)
    if lead > 0:
        g = g.sum(dim=tuple(range(lead)))
    dims = tuple(i for i, s in enumerate(shape) if s == 1 and g.shape[i] != 1)
    if dims:
        g = g.sum(dim=dims, keepdim=True)
    return g


def _reduce(x: torch.Tensor, fn: str, attrs: Dict[str, Any]) -> torch.Tensor:
    dim = attrs.get("dim")
    if dim is None:
        return getattr(x, fn)()
    return getattr(x, fn)(dim=dim, keepdim=bool(attrs.get("keepdim", False)))


class TorchBackend(Backend):
    """
    Reference backend: plain torch array math.
    - torch.autograd is never involved; every payload is produced under torch.no_grad()
    - op names are the dispatch keys used by core.functional and optim.*
    """
    def __init__(self, cfg: Optional[FrameworkConfig] = None) -> None:
        self.cfg = cfg or FrameworkConfig()
        self.profiler = OpProfiler(enabled=self.cfg.enable_profiler)

    @property
    def dtype(self) -> torch.dtype:
        return self.cfg.torch_dtype

    # -------------------------
    # payload helpers
    # -------------------------
    def as_payload(self, x: Any) -> torch.Tensor:
        if isinstance(x, torch.Tensor):
            t = x.detach()
            return t if t.is_floating_point() else t.to(dtype=self.dtype)
        if isinstance(x, np.ndarray):
            return torch.from_numpy(x).to(dtype=self.dtype)
        return torch.tensor(x, dtype=self.dtype)

    def zeros_like(self, x: Any) -> torch.Tensor:
        return torch.zeros_like(x)

    def ones_like(self, x: Any) -> torch.Tensor:
        return torch.ones_like(x)

    def broadcast_shape(self, a: Sequence[int], b: Sequence[int], what: str) -> Tuple[int, ...]:
        try:
            return tuple(torch.broadcast_shapes(tuple(a), tuple(b)))
        except RuntimeError as exc:
            raise ShapeMismatchError(f"{what}: shape mismatch {tuple(a)} vs {tuple(b)}") from exc

    def promote_dtype(self, a: torch.dtype, b: torch.dtype) -> torch.dtype:
        return torch.promote_types(a, b)

    # -------------------------
    # functional ops
    # -------------------------
    @torch.no_grad()
    def op_call(self, op: str, inputs: List[Any], attrs: Optional[Dict[str, Any]] = None) -> Any:
        attrs = attrs or {}
        with self.profiler.scope(op, self._sig(inputs)):
            return self._dispatch(op, inputs, attrs)

    def _dispatch(self, op: str, inputs: List[Any], attrs: Dict[str, Any]) -> Any:
        if op == "add":
            return inputs[0] + inputs[1]
        if op == "sub":
            return inputs[0] - inputs[1]
        if op == "mul":
            return inputs[0] * inputs[1]
        if op == "div":
            return inputs[0] / inputs[1]
        if op == "add_scaled":
            # a + alpha * b
            a, b = inputs
            return a + attrs["alpha"] * b
        if op == "neg":
            return -inputs[0]
        if op == "pow":
            return inputs[0] ** attrs["exponent"]
        if op == "exp":
            return torch.exp(inputs[0])
        if op == "log":
            return torch.log(inputs[0])
        if op == "relu":
            return torch.relu(inputs[0])
        if op == "relu_bwd":
            # inputs: dY, X
            dY, X = inputs
            return dY * (X > 0).to(dY.dtype)
        if op == "sigmoid":
            return torch.sigmoid(inputs[0])
        if op == "tanh":
            return torch.tanh(inputs[0])
        if op == "sign":
            return torch.sign(inputs[0])
        if op == "matmul":
            # attrs: transA, transB (2D only)
            A, B = inputs
            if attrs.get("transA", False): A = A.transpose(-2, -1)
            if attrs.get("transB", False): B = B.transpose(-2, -1)
            return A @ B
        if op == "reshape":
            return inputs[0].reshape(tuple(attrs["shape"]))
        if op == "cast":
            return inputs[0].to(dtype=attrs["dtype"])
        if op == "sum":
            return _reduce(inputs[0], "sum", attrs)
        if op == "mean":
            return _reduce(inputs[0], "mean", attrs)
        if op == "sum_to":
            return _sum_to(inputs[0], attrs["shape"])
        if op == "expand":
            # inputs: dY (reduced), attrs: shape (target), dims (reduced dims to restore)
            dY, = inputs
            for d in sorted(attrs.get("dims") or ()):
                dY = dY.unsqueeze(d)
            return dY.expand(tuple(attrs["shape"]))
        if op == "mse":
            # inputs: y, t -> scalar
            y, t = inputs
            diff = y - t
            return (diff * diff).mean()
        if op == "mse_grad":
            # d/dy mean((y-t)^2) = 2*(y-t)/N
            y, t = inputs
            n = torch.broadcast_shapes(y.shape, t.shape).numel()
            return (2.0 / n) * (y - t)
        if op == "l1":
            y, t = inputs
            return (y - t).abs().mean()
        if op == "copy":
            return inputs[0].clone()
        if op == "index":
            # inputs: x, integer index tensor (first axis)
            x, idx = inputs
            return x[idx]
        if op == "randperm":
            return torch.randperm(attrs["n"], generator=attrs.get("generator"))
        if op == "isfinite":
            return bool(torch.isfinite(inputs[0]).all().item())
        raise KeyError(f"Unknown op: {op}")

    # -------------------------
    # out-parameter ops (in-place)
    # -------------------------
    @torch.no_grad()
    def op_call_out(self, op: str, inputs: List[Any], outputs: List[Any],
                    attrs: Optional[Dict[str, Any]] = None) -> None:
        attrs = attrs or {}
        with self.profiler.scope(op, self._sig(inputs)):
            self._dispatch_out(op, inputs, outputs, attrs)

    def _dispatch_out(self, op: str, inputs: List[Any], outputs: List[Any], attrs: Dict[str, Any]) -> None:
        if op == "copy":
            outputs[0].copy_(inputs[0])
            return
        if op == "add":
            # out := a + b, out may alias a
            a, b = inputs
            if outputs[0] is a:
                a.add_(b)
            else:
                torch.add(a, b, out=outputs[0])
            return
        if op == "grad_zero":
            outputs[0].zero_()
            return
        if op == "sgd_step":
            # inputs: param, grad
            p, g = inputs
            outputs[0].copy_(p - attrs["lr"] * g)
            return
        if op == "momentum_update":
            # buf := momentum * buf + (1 - dampening) * g
            buf, g = inputs
            outputs[0].copy_(attrs["momentum"] * buf + (1.0 - attrs["dampening"]) * g)
            return
        if op == "adam_step":
            # inputs: p, g, m, v ; outputs: p, m, v
            p, g, m, v = inputs
            b1, b2 = attrs["beta1"], attrs["beta2"]
            p_out, m_out, v_out = outputs
            m_out.copy_(b1 * m + (1.0 - b1) * g)
            v_out.copy_(b2 * v + (1.0 - b2) * g * g)
            m_hat = m_out / attrs["bc1"]
            v_hat = v_out / attrs["bc2"]
            p_out.copy_(p - attrs["lr"] * m_hat / (v_hat.sqrt() + attrs["eps"]))
            return
        raise KeyError(f"Unknown op: {op}")

    def _sig(self, inputs: List[Any]) -> str:
        if not self.profiler.enabled:
            return ""
        parts = []
        for x in inputs:
            if isinstance(x, torch.Tensor):
                parts.append(f"{tuple(x.shape)}:{str(x.dtype).replace('torch.', '')}")
        return "|".join(parts)
