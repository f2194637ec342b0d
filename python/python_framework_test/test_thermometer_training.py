from __future__ import annotations

import logging

import pytest
import torch

import minigrad_fw as mg
from minigrad_fw import train as T
from minigrad_fw.optim import SGD, Adam


def test_sgd_on_normalized_input_converges(thermometer):
    t_u, t_c = thermometer
    t_un = 0.1 * t_u
    params = [mg.Parameter(1.0, name="w"), mg.Parameter(0.0, name="b")]
    optimizer = SGD(params, lr=1e-2)

    result = T.training_loop(
        n_epochs=5000,
        optimizer=optimizer,
        params=params,
        train_t_u=t_un,
        train_t_c=t_c,
    )

    w, b = result.params
    assert w is params[0] and b is params[1]
    assert w.item() == pytest.approx(5.3671, abs=1e-2)
    assert b.item() == pytest.approx(-17.3012, abs=5e-2)
    assert result.final_loss == pytest.approx(2.9276, abs=1e-3)
    assert len(result.train_losses) == 5000
    assert result.train_losses[0] == pytest.approx(80.3643, abs=1e-2)


def test_manual_loop_with_detach_matches_optimizer_loop(thermometer):
    t_u, t_c = thermometer
    t_un = 0.1 * t_u

    manual = T.manual_training_loop(
        n_epochs=5000,
        learning_rate=1e-2,
        params=[mg.Parameter(1.0), mg.Parameter(0.0)],
        t_u=t_un,
        t_c=t_c,
    )
    w, b = manual.params
    assert w.is_leaf and w.requires_grad
    assert w.item() == pytest.approx(5.3671, abs=1e-2)
    assert b.item() == pytest.approx(-17.3012, abs=5e-2)
    assert manual.final_loss == pytest.approx(2.9276, abs=1e-3)

    params = [mg.Parameter(1.0), mg.Parameter(0.0)]
    opt_result = T.training_loop(100, SGD(params, lr=1e-2), params, t_un, t_c)
    manual_100 = T.manual_training_loop(100, 1e-2, [mg.Parameter(1.0), mg.Parameter(0.0)], t_un, t_c)
    for a, b in zip(opt_result.params, manual_100.params):
        assert torch.allclose(a.data, b.data, rtol=1e-5)


def test_adam_on_raw_input_converges(thermometer):
    t_u, t_c = thermometer
    params = [mg.Parameter(1.0), mg.Parameter(0.0)]
    result = T.training_loop(2000, Adam(params, lr=1e-1), params, t_u, t_c)

    w, b = result.params
    assert w.item() == pytest.approx(0.5367, abs=1e-2)
    assert b.item() == pytest.approx(-17.3021, abs=1e-1)
    assert result.final_loss == pytest.approx(2.9276, abs=1e-2)


def test_unnormalized_sgd_diverges(thermometer):
    t_u, t_c = thermometer
    params = [mg.Parameter(1.0), mg.Parameter(0.0)]
    with pytest.raises(mg.TrainingDivergedError):
        T.training_loop(100, SGD(params, lr=1e-2), params, t_u, t_c)


def test_validation_split_and_losses(thermometer):
    t_u, t_c = thermometer
    gen = torch.Generator().manual_seed(0)
    (train_u, train_c), (val_u, val_c) = T.split_train_val(t_u, t_c, val_fraction=0.2, generator=gen)

    assert train_u.shape == (9,) and val_u.shape == (2,)
    merged = sorted(train_u.data.tolist() + val_u.data.tolist())
    assert merged == sorted(t_u.data.tolist())
    # pairs stay aligned after the shuffle
    pairs = set(zip(t_u.data.tolist(), t_c.data.tolist()))
    assert set(zip(val_u.data.tolist(), val_c.data.tolist())) <= pairs

    params = [mg.Parameter(1.0), mg.Parameter(0.0)]
    result = T.training_loop(
        3000, SGD(params, lr=1e-2), params,
        0.1 * train_u, train_c, 0.1 * val_u, val_c,
    )
    assert len(result.val_losses) == 3000
    assert result.train_losses[-1] < result.train_losses[0]
    # validation never adds to the parameter graph
    assert all(p.creator is None for p in params)


@pytest.mark.parametrize("frac", [0.0, 1.0, 0.01])
def test_split_rejects_degenerate_fractions(thermometer, frac):
    t_u, t_c = thermometer
    with pytest.raises(ValueError):
        T.split_train_val(t_u, t_c, val_fraction=frac)


def test_split_rejects_misaligned_inputs():
    with pytest.raises(ValueError):
        T.split_train_val(mg.tensor([1.0, 2.0, 3.0]), mg.tensor([1.0, 2.0]))


def test_loop_logs_first_epochs_and_every_n(thermometer, caplog):
    t_u, t_c = thermometer
    params = [mg.Parameter(1.0), mg.Parameter(0.0)]
    cfg = T.TrainerConfig(log_every=10, log_first=2)
    with caplog.at_level(logging.INFO, logger="minigrad_fw.train"):
        T.training_loop(30, SGD(params, lr=1e-2), params, 0.1 * t_u, t_c, cfg=cfg)

    epochs = [r.args[0] for r in caplog.records if r.name == "minigrad_fw.train"]
    assert epochs == [1, 2, 10, 20, 30]


def test_custom_model_and_loss(thermometer):
    t_u, t_c = thermometer
    t_un = 0.1 * t_u

    def quad(t, w2, w1, b):
        return w2 * t ** 2 + w1 * t + b

    params = [mg.Parameter(1.0), mg.Parameter(1.0), mg.Parameter(0.0)]
    result = T.training_loop(
        500, Adam(params, lr=1e-1), params, t_un, t_c,
        model_fn=quad, loss_fn=mg.functional.mse_loss,
    )
    assert result.final_loss < result.train_losses[0]
