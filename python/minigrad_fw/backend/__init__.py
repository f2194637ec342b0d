# minigrad_fw/backend/__init__.py
from __future__ import annotations

import logging
from typing import Optional

from .base import Backend

logger = logging.getLogger(__name__)

_BACKEND: Optional[Backend] = None


def set_backend(b: Optional[Backend]) -> None:
    """Install b as the process backend. None drops it so the next get_backend() rebuilds from env."""
    global _BACKEND
    _BACKEND = b


def get_backend() -> Backend:
    """
    Backend selector.
    Default is TorchBackend built from FrameworkConfig.from_env() (MINIGRAD_BACKEND / MINIGRAD_DTYPE / MINIGRAD_PROFILE).
    """
    global _BACKEND
    if _BACKEND is None:
        from ..config import FrameworkConfig
        from .torch_backend import TorchBackend

        cfg = FrameworkConfig.from_env()
        _BACKEND = TorchBackend(cfg)
        logger.debug("backend selected: %s (dtype=%s, profiler=%s)", cfg.backend, cfg.dtype, cfg.enable_profiler)
    return _BACKEND


__all__ = ["Backend", "get_backend", "set_backend"]
