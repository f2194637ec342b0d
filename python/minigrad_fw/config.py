# minigrad_fw/config.py
from __future__ import annotations

import os
from dataclasses import dataclass

import torch

_STR_DTYPE = {
    "float32": torch.float32,
    "float64": torch.float64,
}

_BACKENDS = ("torch",)

_TRUE = ("1", "true", "yes", "on")


@dataclass
class FrameworkConfig:
    """
    Process-level settings.

    - backend: op dispatch implementation (only "torch" ships)
    - dtype: default dtype used when a Tensor is built from python data
    - enable_profiler: record per-op call counts / wall time
    """
    backend: str = "torch"
    dtype: str = "float32"
    enable_profiler: bool = False

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            raise ValueError(f"Unknown backend kind: {self.backend} (use MINIGRAD_BACKEND=torch)")
        if self.dtype not in _STR_DTYPE:
            raise ValueError(f"Unknown dtype: {self.dtype} (use float32|float64)")

    @property
    def torch_dtype(self) -> torch.dtype:
        return _STR_DTYPE[self.dtype]

    @classmethod
    def from_env(cls) -> "FrameworkConfig":
        return cls(
            backend=os.environ.get("MINIGRAD_BACKEND", "torch").lower(),
            dtype=os.environ.get("MINIGRAD_DTYPE", "float32").lower(),
            enable_profiler=os.environ.get("MINIGRAD_PROFILE", "0").lower() in _TRUE,
        )
