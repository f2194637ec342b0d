# minigrad_fw/core/autograd.py
from __future__ import annotations

from typing import Dict, List, Optional

from ..backend import get_backend
from ..errors import ShapeMismatchError, UntrackedRootError
from .tensor import Tensor

_grad_enabled = True


class no_grad:
    def __enter__(self):
        global _grad_enabled
        self.prev = _grad_enabled
        _grad_enabled = False

    def __exit__(self, exc_type, exc, tb):
        global _grad_enabled
        _grad_enabled = self.prev


def grad_enabled() -> bool:
    return _grad_enabled


# ============================================================
# Node base
# ============================================================

class Node:
    """
    Origin of a non-leaf Tensor: the op name plus its operands, in order.
    Subclasses keep whatever forward values their derivative rule needs.
    """
    op = "node"

    def __init__(self, inputs: List[Tensor]):
        self.inputs = inputs

    def backward(self, out_grad):
        """out_grad payload -> one payload (or None) per input, each shaped like that input."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(op={self.op!r}, inputs={len(self.inputs)})"


def _topo_sort(root: Tensor) -> List[Tensor]:
    # iterative post-order DFS: long creator chains must not hit the recursion limit
    visited = set()
    order: List[Tensor] = []
    stack = [(root, False)]

    while stack:
        t, expanded = stack.pop()
        if expanded:
            order.append(t)
            continue
        if id(t) in visited:
            continue
        visited.add(id(t))
        stack.append((t, True))
        if t.creator is not None:
            for inp in reversed(t.creator.inputs):
                if id(inp) not in visited:
                    stack.append((inp, False))

    return order  # inputs first, root last


# ============================================================
# Leaf grad accumulation
# ============================================================

def _leaf_add(t: Tensor, g) -> None:
    """
    Accumulate on leaf in-place:
      grad_buf += g
    """
    if not t.requires_grad:
        return

    backend = get_backend()
    if t.grad is None:
        t.grad = Tensor(backend.op_call("copy", [g]), requires_grad=False)
        return

    backend.op_call_out("add", [t.grad.data, g], [t.grad.data])


def _check_grad(inp: Tensor, g, op: str):
    if tuple(g.shape) != inp.shape:
        raise ShapeMismatchError(
            f"backward({op}): grad shape {tuple(g.shape)} does not match input shape {inp.shape}"
        )
    if g.dtype != inp.dtype:
        g = get_backend().op_call("cast", [g], {"dtype": inp.dtype})
    return g


# ============================================================
# Backward
# ============================================================

def backward(loss: Tensor, grad: Optional[Tensor] = None) -> None:
    """
    Reverse-mode autodiff from `loss`.

    - Leaf grads are ADDED into leaf.grad; call zero_grad() between iterations.
    - Non-leaf grads live in a local map only; a Tensor consumed by several ops
      receives the sum of every contribution before its own creator runs.
    - grad=None requires a scalar loss (seed = 1).
    """
    if loss.creator is None and not loss.requires_grad:
        raise UntrackedRootError(
            "backward: tensor has no creator and requires_grad=False (nothing to differentiate)"
        )

    backend = get_backend()

    if grad is None:
        if loss.numel() != 1:
            raise ValueError(f"backward: grad can be implicitly created only for scalar outputs, got shape {loss.shape}")
        seed = backend.ones_like(loss.data)
    else:
        seed = grad.data if isinstance(grad, Tensor) else backend.as_payload(grad)
        seed = _check_grad(loss, seed, "seed")

    if loss.creator is None:
        _leaf_add(loss, seed)
        return

    # local grad map for non-leaf tensors
    gmap: Dict[int, object] = {id(loss): seed}

    topo = _topo_sort(loss)
    topo.reverse()

    for t in topo:
        if t.creator is None:
            continue

        outg = gmap.pop(id(t), None)
        if outg is None:
            continue

        in_grads = t.creator.backward(outg)
        assert len(in_grads) == len(t.creator.inputs)

        for inp, ig in zip(t.creator.inputs, in_grads):
            if ig is None:
                continue
            if inp.creator is None:
                if inp.requires_grad:
                    _leaf_add(inp, _check_grad(inp, ig, t.creator.op))
                continue

            ig = _check_grad(inp, ig, t.creator.op)
            prev = gmap.get(id(inp))
            gmap[id(inp)] = ig if prev is None else backend.op_call("add", [prev, ig])


# ============================================================
# Free-function forms
# ============================================================

def detach(value: Tensor, requires_grad: bool = False) -> Tensor:
    return value.detach(requires_grad=requires_grad)


def zero_grad(value: Tensor, set_to_none: bool = True) -> None:
    value.zero_grad(set_to_none=set_to_none)
