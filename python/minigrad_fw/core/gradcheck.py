# minigrad_fw/core/gradcheck.py
from __future__ import annotations

from typing import Callable, Optional, Sequence

import torch

from ..errors import GradcheckError
from .autograd import no_grad
from .tensor import Tensor


def numerical_grad(fn: Callable[..., Tensor], inputs: Sequence[Tensor], index: int,
                   eps: float = 1e-6) -> torch.Tensor:
    """Central differences of scalar fn(*inputs) w.r.t. inputs[index]."""
    x = inputs[index]
    if not x.data.is_contiguous():
        x.data = x.data.contiguous()
    flat = x.data.view(-1)
    out = torch.zeros_like(flat)

    with no_grad(), torch.no_grad():
        for j in range(flat.numel()):
            orig = float(flat[j].item())
            flat[j] = orig + eps
            fp = fn(*inputs).item()
            flat[j] = orig - eps
            fm = fn(*inputs).item()
            flat[j] = orig
            out[j] = (fp - fm) / (2.0 * eps)

    return out.view(x.shape)


def gradcheck(
    fn: Callable[..., Tensor],
    inputs: Sequence[Tensor],
    eps: float = 1e-6,
    atol: float = 1e-5,
    rtol: float = 1e-3,
    raise_exception: bool = True,
) -> bool:
    """
    Compare backward() grads of a scalar fn against finite differences.

    Use float64 inputs; float32 round-off swamps eps=1e-6.
    Existing .grad of the inputs is restored afterwards.
    """
    inputs = list(inputs)
    saved = [x.grad for x in inputs]
    for x in inputs:
        x.grad = None

    try:
        out = fn(*inputs)
        if out.numel() != 1:
            raise ValueError(f"gradcheck: fn must return a scalar, got shape {out.shape}")
        out.backward()

        for i, x in enumerate(inputs):
            if not x.requires_grad:
                continue
            analytic: Optional[torch.Tensor] = x.grad.data if x.grad is not None else torch.zeros_like(x.data)
            numeric = numerical_grad(fn, inputs, i, eps=eps)
            if not torch.allclose(analytic, numeric, atol=atol, rtol=rtol):
                dev = float((analytic - numeric).abs().max().item())
                if raise_exception:
                    raise GradcheckError(
                        f"gradcheck: input {i} ({x.name or 'unnamed'}) max abs deviation {dev:.3e} "
                        f"(atol={atol}, rtol={rtol})"
                    )
                return False
        return True
    finally:
        for x, g in zip(inputs, saved):
            x.grad = g
