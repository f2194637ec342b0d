# minigrad_fw/train.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import torch

from .backend import get_backend
from .core.autograd import no_grad
from .core.tensor import Tensor
from .errors import TrainingDivergedError
from .optim.base import Optimizer

logger = logging.getLogger(__name__)


# -----------------------------
# model / loss of the thermometer walkthrough
# -----------------------------
def model(t_u: Tensor, w: Tensor, b: Tensor) -> Tensor:
    return w * t_u + b


def loss_fn(t_p: Tensor, t_c: Tensor) -> Tensor:
    squared_diffs = (t_p - t_c) ** 2
    return squared_diffs.mean()


# -----------------------------
# config
# -----------------------------
@dataclass
class TrainerConfig:
    log_every: int = 500
    log_first: int = 3          # also log epochs 1..log_first
    check_finite: bool = True   # raise TrainingDivergedError on NaN/Inf loss


@dataclass
class TrainResult:
    params: List[Tensor]
    train_losses: List[float] = field(default_factory=list)
    val_losses: List[float] = field(default_factory=list)

    @property
    def final_loss(self) -> float:
        return self.train_losses[-1]


def _should_log(epoch: int, cfg: TrainerConfig) -> bool:
    return epoch <= cfg.log_first or (cfg.log_every > 0 and epoch % cfg.log_every == 0)


def _check_finite(loss: Tensor, epoch: int, cfg: TrainerConfig) -> None:
    if cfg.check_finite and not get_backend().op_call("isfinite", [loss.data]):
        raise TrainingDivergedError(f"epoch {epoch}: loss became {loss.item()} (lower the learning rate?)")


# -----------------------------
# loops
# -----------------------------
def training_loop(
    n_epochs: int,
    optimizer: Optimizer,
    params: Sequence[Tensor],
    train_t_u: Tensor,
    train_t_c: Tensor,
    val_t_u: Optional[Tensor] = None,
    val_t_c: Optional[Tensor] = None,
    model_fn: Callable[..., Tensor] = model,
    loss_fn: Callable[[Tensor, Tensor], Tensor] = loss_fn,
    cfg: Optional[TrainerConfig] = None,
) -> TrainResult:
    """
    Optimizer-driven loop: zero_grad -> forward -> backward -> step.
    Params are updated in place by the optimizer, so no detach is needed.
    The validation loss is evaluated under no_grad and never reaches the graph.
    """
    cfg = cfg or TrainerConfig()
    params = list(params)
    result = TrainResult(params=params)
    has_val = val_t_u is not None and val_t_c is not None

    for epoch in range(1, n_epochs + 1):
        train_t_p = model_fn(train_t_u, *params)
        train_loss = loss_fn(train_t_p, train_t_c)
        _check_finite(train_loss, epoch, cfg)

        optimizer.zero_grad()
        train_loss.backward()
        optimizer.step()

        result.train_losses.append(train_loss.item())

        if has_val:
            with no_grad():
                val_loss = loss_fn(model_fn(val_t_u, *params), val_t_c)
            result.val_losses.append(val_loss.item())

        if _should_log(epoch, cfg):
            if has_val:
                logger.info("Epoch %d, Training loss %.4f, Validation loss %.4f",
                            epoch, result.train_losses[-1], result.val_losses[-1])
            else:
                logger.info("Epoch %d, Loss %f", epoch, result.train_losses[-1])

    return result


def manual_training_loop(
    n_epochs: int,
    learning_rate: float,
    params: Sequence[Tensor],
    t_u: Tensor,
    t_c: Tensor,
    model_fn: Callable[..., Tensor] = model,
    loss_fn: Callable[[Tensor, Tensor], Tensor] = loss_fn,
    cfg: Optional[TrainerConfig] = None,
) -> TrainResult:
    """
    Out-of-place update without an optimizer.

    Every epoch the new params are built from the old ones and then detached
    and re-marked requires_grad, so the history kept alive is one epoch deep
    and each backward() only sees the current forward graph.
    """
    cfg = cfg or TrainerConfig()
    params = list(params)
    result = TrainResult(params=params)

    for epoch in range(1, n_epochs + 1):
        for p in params:
            p.zero_grad()

        t_p = model_fn(t_u, *params)
        loss = loss_fn(t_p, t_c)
        _check_finite(loss, epoch, cfg)
        loss.backward()

        params = [(p - learning_rate * p.grad).detach().requires_grad_() for p in params]
        result.train_losses.append(loss.item())

        if _should_log(epoch, cfg):
            logger.info("Epoch %d, Loss %f", epoch, result.train_losses[-1])

    result.params = params
    return result


# -----------------------------
# data split
# -----------------------------
def split_train_val(
    *tensors: Tensor,
    val_fraction: float = 0.2,
    generator: Optional[torch.Generator] = None,
) -> Tuple[List[Tensor], List[Tensor]]:
    """
    Shuffle the first axis once and split every tensor with the same permutation.
    Returns ([train...], [val...]) as untracked constants.
    """
    if not tensors:
        raise ValueError("split_train_val: need at least one tensor")
    n_samples = tensors[0].shape[0]
    for t in tensors[1:]:
        if t.shape[0] != n_samples:
            raise ValueError(f"split_train_val: first-axis mismatch {t.shape[0]} vs {n_samples}")
    if not 0.0 < val_fraction < 1.0:
        raise ValueError(f"split_train_val: val_fraction must be in (0, 1), got {val_fraction}")

    n_val = int(val_fraction * n_samples)
    if n_val == 0 or n_val == n_samples:
        raise ValueError(f"split_train_val: {n_samples} samples cannot be split with val_fraction={val_fraction}")

    backend = get_backend()
    shuffled = backend.op_call("randperm", [], {"n": n_samples, "generator": generator})
    train_idx = shuffled[:-n_val]
    val_idx = shuffled[-n_val:]

    train = [Tensor(backend.op_call("index", [t.data, train_idx])) for t in tensors]
    val = [Tensor(backend.op_call("index", [t.data, val_idx])) for t in tensors]
    return train, val
