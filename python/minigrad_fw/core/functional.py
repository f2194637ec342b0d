# minigrad_fw/core/functional.py
from __future__ import annotations

import builtins
from typing import Any, Optional, Sequence, Tuple, Union

from ..backend import get_backend
from ..errors import ShapeMismatchError
from .autograd import Node, grad_enabled
from .tensor import Tensor

Dim = Optional[Union[int, Sequence[int]]]


# ============================================================
# helpers
# ============================================================

def _wrap(x: Any) -> Tensor:
    """Python scalars / raw arrays become untracked constants."""
    return x if isinstance(x, Tensor) else Tensor(x, requires_grad=False)


def _needs_grad(*ts: Tensor) -> bool:
    if not grad_enabled():
        return False
    return builtins.any(t.requires_grad or t.creator is not None for t in ts)


def _result(data, node: Node) -> Tensor:
    if _needs_grad(*node.inputs):
        return Tensor(data, requires_grad=True, creator=node)
    return Tensor(data, requires_grad=False)


def _unbroadcast(g, shape: Tuple[int, ...]):
    return get_backend().op_call("sum_to", [g], {"shape": shape})


def _as_dtype(x, dtype):
    return x if x.dtype == dtype else get_backend().op_call("cast", [x], {"dtype": dtype})


def _norm_dims(dim: Dim, ndim: int) -> Optional[Tuple[int, ...]]:
    if dim is None:
        return None
    dims = (dim,) if isinstance(dim, int) else tuple(dim)
    if not dims:
        # dim=() reduces over every axis
        return tuple(range(ndim))
    out = []
    for d in dims:
        if not -ndim <= d < builtins.max(ndim, 1):
            raise ShapeMismatchError(f"reduce: dim {d} out of range for a {ndim}-D tensor")
        out.append(d % ndim if ndim else 0)
    return tuple(sorted(set(out)))


# ============================================================
# element-wise binary ops (broadcasting)
# ============================================================

class _BinaryNode(Node):
    def __init__(self, a: Tensor, b: Tensor):
        super().__init__([a, b])
        self.a_shape = a.shape
        self.b_shape = b.shape


class _AddNode(_BinaryNode):
    op = "add"

    def backward(self, out_grad):
        return [_unbroadcast(out_grad, self.a_shape), _unbroadcast(out_grad, self.b_shape)]


class _SubNode(_BinaryNode):
    op = "sub"

    def backward(self, out_grad):
        bk = get_backend()
        return [
            _unbroadcast(out_grad, self.a_shape),
            _unbroadcast(bk.op_call("neg", [out_grad]), self.b_shape),
        ]


class _MulNode(_BinaryNode):
    op = "mul"

    def backward(self, out_grad):
        bk = get_backend()
        a, b = self.inputs
        return [
            _unbroadcast(bk.op_call("mul", [out_grad, b.data]), self.a_shape),
            _unbroadcast(bk.op_call("mul", [out_grad, a.data]), self.b_shape),
        ]


class _DivNode(_BinaryNode):
    op = "div"

    def backward(self, out_grad):
        bk = get_backend()
        a, b = self.inputs
        # d(a/b)/da = 1/b ; d(a/b)/db = -a/b^2
        da = bk.op_call("div", [out_grad, b.data])
        db = bk.op_call("neg", [bk.op_call("div", [bk.op_call("mul", [out_grad, a.data]),
                                                    bk.op_call("mul", [b.data, b.data])])])
        return [_unbroadcast(da, self.a_shape), _unbroadcast(db, self.b_shape)]


def _payload(x: Any):
    return x.data if isinstance(x, Tensor) else get_backend().as_payload(x)


def _binary(op: str, node_cls, a: Any, b: Any) -> Tensor:
    bk = get_backend()
    pa, pb = _payload(a), _payload(b)
    bk.broadcast_shape(pa.shape, pb.shape, op)
    a = a if isinstance(a, Tensor) else _wrap(pa)
    b = b if isinstance(b, Tensor) else _wrap(pb)
    data = bk.op_call(op, [a.data, b.data])
    return _result(data, node_cls(a, b))


def add(a: Any, b: Any) -> Tensor:
    return _binary("add", _AddNode, a, b)


def sub(a: Any, b: Any) -> Tensor:
    return _binary("sub", _SubNode, a, b)


def mul(a: Any, b: Any) -> Tensor:
    return _binary("mul", _MulNode, a, b)


def div(a: Any, b: Any) -> Tensor:
    return _binary("div", _DivNode, a, b)


# ============================================================
# element-wise unary ops
# ============================================================

class _NegNode(Node):
    op = "neg"

    def backward(self, out_grad):
        return [get_backend().op_call("neg", [out_grad])]


class _PowNode(Node):
    op = "pow"

    def __init__(self, x: Tensor, exponent: float):
        super().__init__([x])
        self.exponent = exponent

    def backward(self, out_grad):
        bk = get_backend()
        x = self.inputs[0]
        if self.exponent == 0:
            return [bk.zeros_like(out_grad)]
        # d(x^e)/dx = e * x^(e-1)
        local = bk.op_call("mul", [bk.op_call("pow", [x.data], {"exponent": self.exponent - 1}), self.exponent])
        return [bk.op_call("mul", [out_grad, local])]


class _ExpNode(Node):
    op = "exp"

    def __init__(self, x: Tensor, out):
        super().__init__([x])
        self.out = out

    def backward(self, out_grad):
        return [get_backend().op_call("mul", [out_grad, self.out])]


class _LogNode(Node):
    op = "log"

    def backward(self, out_grad):
        return [get_backend().op_call("div", [out_grad, self.inputs[0].data])]


class _ReluNode(Node):
    op = "relu"

    def backward(self, out_grad):
        return [get_backend().op_call("relu_bwd", [out_grad, self.inputs[0].data])]


class _SigmoidNode(Node):
    op = "sigmoid"

    def __init__(self, x: Tensor, out):
        super().__init__([x])
        self.out = out

    def backward(self, out_grad):
        bk = get_backend()
        # s * (1 - s)
        local = bk.op_call("mul", [self.out, bk.op_call("sub", [1.0, self.out])])
        return [bk.op_call("mul", [out_grad, local])]


class _TanhNode(Node):
    op = "tanh"

    def __init__(self, x: Tensor, out):
        super().__init__([x])
        self.out = out

    def backward(self, out_grad):
        bk = get_backend()
        # 1 - t^2
        local = bk.op_call("sub", [1.0, bk.op_call("mul", [self.out, self.out])])
        return [bk.op_call("mul", [out_grad, local])]


def neg(x: Any) -> Tensor:
    x = _wrap(x)
    return _result(get_backend().op_call("neg", [x.data]), _NegNode([x]))


def pow(x: Any, exponent: Union[int, float]) -> Tensor:
    if isinstance(exponent, Tensor) or not isinstance(exponent, (int, float)):
        raise TypeError(f"pow: only int/float exponents supported, got {type(exponent)}")
    x = _wrap(x)
    data = get_backend().op_call("pow", [x.data], {"exponent": exponent})
    return _result(data, _PowNode(x, exponent))


def exp(x: Any) -> Tensor:
    x = _wrap(x)
    out = get_backend().op_call("exp", [x.data])
    return _result(out, _ExpNode(x, out))


def log(x: Any) -> Tensor:
    x = _wrap(x)
    return _result(get_backend().op_call("log", [x.data]), _LogNode([x]))


def relu(x: Any) -> Tensor:
    x = _wrap(x)
    return _result(get_backend().op_call("relu", [x.data]), _ReluNode([x]))


def sigmoid(x: Any) -> Tensor:
    x = _wrap(x)
    out = get_backend().op_call("sigmoid", [x.data])
    return _result(out, _SigmoidNode(x, out))


def tanh(x: Any) -> Tensor:
    x = _wrap(x)
    out = get_backend().op_call("tanh", [x.data])
    return _result(out, _TanhNode(x, out))


# ============================================================
# matmul (1-D / 2-D)
# ============================================================

class _MatmulNode(Node):
    """
    1-D operands are promoted to 2-D for the backward pass:
      a: (k,) -> (1, k)    b: (k,) -> (k, 1)
    dA = dY @ B^T ; dB = A^T @ dY
    """
    op = "matmul"

    def __init__(self, a: Tensor, b: Tensor, dtype):
        super().__init__([a, b])
        self.dtype = dtype
        self.a2 = (1, a.shape[0]) if a.ndim == 1 else a.shape
        self.b2 = (b.shape[0], 1) if b.ndim == 1 else b.shape

    def backward(self, out_grad):
        bk = get_backend()
        a, b = self.inputs
        A = bk.op_call("reshape", [_as_dtype(a.data, self.dtype)], {"shape": self.a2})
        B = bk.op_call("reshape", [_as_dtype(b.data, self.dtype)], {"shape": self.b2})
        dY = bk.op_call("reshape", [_as_dtype(out_grad, self.dtype)], {"shape": (self.a2[0], self.b2[1])})

        dA = bk.op_call("matmul", [dY, B], {"transB": True})
        dB = bk.op_call("matmul", [A, dY], {"transA": True})
        return [
            bk.op_call("reshape", [dA], {"shape": a.shape}),
            bk.op_call("reshape", [dB], {"shape": b.shape}),
        ]


def matmul(a: Any, b: Any) -> Tensor:
    a, b = _wrap(a), _wrap(b)
    if a.ndim not in (1, 2) or b.ndim not in (1, 2):
        raise ShapeMismatchError(f"matmul: expects 1-D or 2-D operands, got a={a.shape} b={b.shape}")
    k_a = a.shape[-1]
    k_b = b.shape[0]
    if k_a != k_b:
        raise ShapeMismatchError(f"matmul: shape mismatch {a.shape} vs {b.shape} (inner dims {k_a} != {k_b})")
    bk = get_backend()
    dtype = bk.promote_dtype(a.dtype, b.dtype)
    data = bk.op_call("matmul", [_as_dtype(a.data, dtype), _as_dtype(b.data, dtype)])
    return _result(data, _MatmulNode(a, b, dtype))


# ============================================================
# reductions
# ============================================================

class _ReduceNode(Node):
    def __init__(self, x: Tensor, dims: Optional[Tuple[int, ...]], keepdim: bool):
        super().__init__([x])
        self.dims = dims
        self.keepdim = keepdim

    def _expand(self, out_grad):
        x = self.inputs[0]
        # keepdim=True already kept the reduced axes as size-1; full reduction (dims=None) is 0-D
        if self.dims is None:
            restore = tuple(range(x.ndim))
        elif self.keepdim:
            restore = ()
        else:
            restore = self.dims
        return get_backend().op_call("expand", [out_grad], {"shape": x.shape, "dims": restore})

    def _count(self) -> int:
        x = self.inputs[0]
        if self.dims is None:
            return builtins.max(x.numel(), 1)
        n = 1
        for d in self.dims:
            n *= x.shape[d]
        return n


class _SumNode(_ReduceNode):
    op = "sum"

    def backward(self, out_grad):
        return [self._expand(out_grad)]


class _MeanNode(_ReduceNode):
    op = "mean"

    def backward(self, out_grad):
        bk = get_backend()
        return [bk.op_call("div", [self._expand(out_grad), float(self._count())])]


def _reduce(op: str, node_cls, x: Any, dim: Dim, keepdim: bool) -> Tensor:
    x = _wrap(x)
    dims = _norm_dims(dim, x.ndim)
    if dims is not None and x.ndim == 0:
        dims = None
    attrs = {"dim": dims, "keepdim": keepdim}
    data = get_backend().op_call(op, [x.data], attrs)
    return _result(data, node_cls(x, dims, keepdim))


def sum(x: Any, dim: Dim = None, keepdim: bool = False) -> Tensor:
    return _reduce("sum", _SumNode, x, dim, keepdim)


def mean(x: Any, dim: Dim = None, keepdim: bool = False) -> Tensor:
    return _reduce("mean", _MeanNode, x, dim, keepdim)


# ============================================================
# losses
# ============================================================

class _MseNode(_BinaryNode):
    op = "mse_loss"

    def backward(self, out_grad):
        bk = get_backend()
        y, t = self.inputs
        dy = bk.op_call("mul", [bk.op_call("mse_grad", [y.data, t.data]), out_grad])
        return [
            _unbroadcast(dy, self.a_shape),
            _unbroadcast(bk.op_call("neg", [dy]), self.b_shape),
        ]


class _L1Node(_BinaryNode):
    op = "l1_loss"

    def backward(self, out_grad):
        bk = get_backend()
        y, t = self.inputs
        diff = bk.op_call("sub", [y.data, t.data])
        n = float(builtins.max(diff.numel(), 1))
        dy = bk.op_call("mul", [bk.op_call("div", [bk.op_call("sign", [diff]), n]), out_grad])
        return [
            _unbroadcast(dy, self.a_shape),
            _unbroadcast(bk.op_call("neg", [dy]), self.b_shape),
        ]


def mse_loss(y: Any, t: Any) -> Tensor:
    """mean((y - t)^2), fused into a single graph node."""
    return _binary("mse", _MseNode, y, t)


def l1_loss(y: Any, t: Any) -> Tensor:
    """mean(|y - t|)"""
    return _binary("l1", _L1Node, y, t)
