from __future__ import annotations

import pytest
import torch

from minigrad_fw.backend import set_backend

# thermometer readings: celsius targets and unknown-unit inputs
T_C = [0.5, 14.0, 15.0, 28.0, 11.0, 8.0, 3.0, -4.0, 6.0, 13.0, 21.0]
T_U = [35.7, 55.9, 58.2, 81.9, 56.3, 48.9, 33.9, 21.8, 48.4, 60.4, 68.4]


@pytest.fixture(autouse=True)
def fresh_backend(monkeypatch):
    """Every test starts from the default env-built backend."""
    for key in ("MINIGRAD_BACKEND", "MINIGRAD_DTYPE", "MINIGRAD_PROFILE"):
        monkeypatch.delenv(key, raising=False)
    set_backend(None)
    torch.manual_seed(0)
    yield
    set_backend(None)


@pytest.fixture
def thermometer():
    from minigrad_fw import tensor
    return tensor(T_U), tensor(T_C)
