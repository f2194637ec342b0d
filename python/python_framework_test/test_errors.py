from __future__ import annotations

import pytest
import torch

import minigrad_fw as mg
from minigrad_fw.core import functional as F


def test_backward_on_untracked_leaf():
    x = mg.tensor(1.0)
    with pytest.raises(mg.UntrackedRootError):
        x.backward()


def test_backward_non_scalar_without_seed():
    y = mg.Parameter([1.0, 2.0]) * 2.0
    with pytest.raises(ValueError):
        y.backward()


def test_seed_shape_must_match_root():
    y = mg.Parameter([1.0, 2.0]) * 2.0
    with pytest.raises(mg.ShapeMismatchError):
        y.backward(mg.tensor([1.0, 1.0, 1.0]))


def test_incompatible_broadcast_fails_before_tensor_created(monkeypatch):
    a = mg.Parameter([1.0, 2.0, 3.0])
    b = mg.Parameter([1.0, 2.0])

    created = []
    orig_init = mg.Tensor.__init__

    def spy(self, *args, **kwargs):
        created.append(self)
        orig_init(self, *args, **kwargs)

    monkeypatch.setattr(mg.Tensor, "__init__", spy)
    with pytest.raises(mg.ShapeMismatchError):
        a + b
    assert created == []


def test_raw_operand_checked_before_wrapping(monkeypatch):
    a = mg.Parameter([1.0, 2.0, 3.0])

    created = []
    orig_init = mg.Tensor.__init__

    def spy(self, *args, **kwargs):
        created.append(self)
        orig_init(self, *args, **kwargs)

    monkeypatch.setattr(mg.Tensor, "__init__", spy)
    with pytest.raises(mg.ShapeMismatchError):
        a + [1.0, 2.0]
    with pytest.raises(mg.ShapeMismatchError):
        F.mul(torch.ones(4), a)
    assert created == []


def test_shape_mismatch_is_value_error():
    with pytest.raises(ValueError):
        mg.tensor([[1.0, 2.0]]) * mg.tensor([1.0, 2.0, 3.0])


@pytest.mark.parametrize(
    "sa,sb",
    [
        ((2, 3), (2, 3)),
        ((3,), (2,)),
        ((2, 2, 2), (2, 2)),
    ],
)
def test_matmul_shape_errors(sa, sb):
    import torch
    with pytest.raises(mg.ShapeMismatchError):
        F.matmul(mg.tensor(torch.zeros(sa)), mg.tensor(torch.zeros(sb)))


def test_reduce_dim_out_of_range():
    with pytest.raises(mg.ShapeMismatchError):
        F.sum(mg.tensor([[1.0]]), dim=2)


def test_pow_rejects_tensor_exponent():
    with pytest.raises(TypeError):
        mg.Parameter(2.0) ** mg.tensor(2.0)


def test_all_errors_share_base():
    for cls in (mg.UntrackedRootError, mg.NoGradientError, mg.ShapeMismatchError,
                mg.GradcheckError, mg.TrainingDivergedError):
        assert issubclass(cls, mg.AutogradError)
        assert issubclass(cls, RuntimeError)


def test_unknown_backend_op():
    with pytest.raises(KeyError):
        mg.get_backend().op_call("conv2d", [])
