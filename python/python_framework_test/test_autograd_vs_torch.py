from __future__ import annotations

import pytest
import torch

import minigrad_fw as mg
from minigrad_fw.core import functional as F


def _pair(shape, positive=False):
    t = torch.randn(shape, dtype=torch.float64)
    if positive:
        t = t.abs() + 0.5
    ref = t.clone().requires_grad_(True)
    ours = mg.Parameter(t.clone())
    return ref, ours


def _check(fn_ref, fn_ours, *specs):
    refs, ours = zip(*(_pair(shape, positive) for shape, positive in specs))
    fn_ref(*refs).backward()
    fn_ours(*ours).backward()
    for r, o in zip(refs, ours):
        assert o.grad is not None
        assert o.grad.shape == tuple(r.shape)
        assert torch.allclose(o.grad.data, r.grad, rtol=1e-9, atol=1e-12)


@pytest.mark.parametrize(
    "shapes",
    [
        [(3,), (3,)],
        [(2, 3), (3,)],
        [(2, 1), (1, 4)],
        [(4, 3), ()],
    ],
)
def test_arithmetic_broadcast(shapes):
    sa, sb = shapes
    _check(
        lambda a, b: ((a + b) * (a - b) / (b * b + 1.0)).sum(),
        lambda a, b: ((a + b) * (a - b) / (b * b + 1.0)).sum(),
        (sa, False),
        (sb, False),
    )


def test_division_both_operands():
    _check(
        lambda a, b: (a / b).sum(),
        lambda a, b: (a / b).sum(),
        ((5,), False),
        ((5,), True),
    )


def test_rsub_rdiv_neg():
    _check(
        lambda a: (2.0 - a + 1.0 / a - (-a)).sum(),
        lambda a: (2.0 - a + 1.0 / a - (-a)).sum(),
        ((6,), True),
    )


@pytest.mark.parametrize("exponent", [0, 2, 3, 0.5, -1.5])
def test_pow(exponent):
    _check(
        lambda a: (a ** exponent).sum(),
        lambda a: (a ** exponent).sum(),
        ((4,), True),
    )


def test_pow_zero_exponent_at_zero():
    t = torch.tensor([0.0, 1.5, -2.0], dtype=torch.float64)
    ref = t.clone().requires_grad_(True)
    ours = mg.Parameter(t.clone())

    (ref ** 0).sum().backward()
    (ours ** 0).sum().backward()

    assert torch.isfinite(ours.grad.data).all()
    assert torch.equal(ours.grad.data, torch.zeros(3, dtype=torch.float64))
    assert torch.allclose(ours.grad.data, ref.grad)


def test_exp_log():
    _check(
        lambda a: (a.exp() * a.log()).mean(),
        lambda a: (a.exp() * a.log()).mean(),
        ((3, 2), True),
    )


@pytest.mark.parametrize(
    "name",
    ["relu", "sigmoid", "tanh"],
)
def test_activations(name):
    _check(
        lambda a: getattr(torch, name)(a).sum(),
        lambda a: getattr(F, name)(a).sum(),
        ((10,), False),
    )


@pytest.mark.parametrize(
    "sa,sb",
    [
        ((3, 4), (4, 2)),
        ((3, 4), (4,)),
        ((4,), (4, 2)),
        ((4,), (4,)),
    ],
)
def test_matmul(sa, sb):
    _check(
        lambda a, b: ((a @ b) ** 2).sum(),
        lambda a, b: ((a @ b) ** 2).sum(),
        (sa, False),
        (sb, False),
    )


def test_matmul_mixed_dtypes():
    a32 = torch.randn(2, 3, dtype=torch.float32)
    b64 = torch.randn(3, 2, dtype=torch.float64)
    ref_a = a32.clone().requires_grad_(True)
    ref_b = b64.clone().requires_grad_(True)
    a, b = mg.Parameter(a32.clone()), mg.Parameter(b64.clone())

    ((ref_a.double() @ ref_b) ** 2).sum().backward()
    out = a @ b
    (out ** 2).sum().backward()

    assert out.dtype == torch.float64
    assert a.grad.dtype == torch.float32 and b.grad.dtype == torch.float64
    assert torch.allclose(a.grad.data, ref_a.grad, rtol=1e-5, atol=1e-6)
    assert torch.allclose(b.grad.data, ref_b.grad, rtol=1e-5, atol=1e-6)


@pytest.mark.parametrize(
    "dim,keepdim",
    [
        (None, False),
        (0, False),
        (1, True),
        (-1, False),
        ((0, 2), False),
        ((0, 2), True),
    ],
)
def test_reductions(dim, keepdim):
    weights = torch.randn(2, 3, 4, dtype=torch.float64)

    def fn_ref(a):
        if dim is None:
            s, m = a.sum(), a.mean()
        else:
            s, m = a.sum(dim=dim, keepdim=keepdim), a.mean(dim=dim, keepdim=keepdim)
        return (s * 2.0 + m ** 2).sum() + (a * weights).sum()

    def fn_ours(a):
        s, m = a.sum(dim=dim, keepdim=keepdim), a.mean(dim=dim, keepdim=keepdim)
        return F.sum(s * 2.0 + m ** 2) + F.sum(a * mg.tensor(weights))

    _check(fn_ref, fn_ours, ((2, 3, 4), False))


@pytest.mark.parametrize("keepdim", [False, True])
def test_empty_dim_tuple_reduces_every_axis(keepdim):
    def fn_ref(a):
        every = (0, 1, 2)
        s, m = a.sum(dim=every, keepdim=keepdim), a.mean(dim=every, keepdim=keepdim)
        return (s * 3.0 + m ** 2).sum()

    def fn_ours(a):
        s, m = a.sum(dim=(), keepdim=keepdim), a.mean(dim=(), keepdim=keepdim)
        assert m.shape == ((1, 1, 1) if keepdim else ())
        return F.sum(s * 3.0 + m ** 2)

    _check(fn_ref, fn_ours, ((2, 3, 4), False))


def test_mse_and_l1_losses():
    target = torch.randn(5, 2, dtype=torch.float64)
    _check(
        lambda y: torch.nn.functional.mse_loss(y, target) + torch.nn.functional.l1_loss(y, target),
        lambda y: F.mse_loss(y, mg.tensor(target)) + F.l1_loss(y, mg.tensor(target)),
        ((5, 2), False),
    )


def test_mse_loss_matches_composed_form():
    y = mg.Parameter(torch.randn(6, dtype=torch.float64))
    t = mg.tensor(torch.randn(6, dtype=torch.float64))
    fused = F.mse_loss(y, t)
    fused.backward()
    g_fused = y.grad.data.clone()

    y.zero_grad()
    composed = ((y - t) ** 2).mean()
    composed.backward()

    assert torch.allclose(fused.data, composed.data)
    assert torch.allclose(g_fused, y.grad.data)
