# minigrad_fw/utils/profiling.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)


@dataclass
class OpStat:
    calls: int = 0
    total_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / max(self.calls, 1)


class OpProfiler:
    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.stats: Dict[str, OpStat] = {}

    @contextmanager
    def scope(self, op_name: str, sig: str = ""):
        if not self.enabled:
            yield
            return
        key = f"{op_name}::{sig}" if sig else op_name
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt_ms = (time.perf_counter() - t0) * 1000.0
            st = self.stats.setdefault(key, OpStat())
            st.calls += 1
            st.total_ms += dt_ms

    def calls(self, op_name: str) -> int:
        """Total calls of op_name summed over every signature."""
        return sum(
            st.calls for k, st in self.stats.items()
            if k == op_name or k.startswith(op_name + "::")
        )

    def report(self, topk: int = 10) -> List[Tuple[str, OpStat]]:
        items = sorted(self.stats.items(), key=lambda kv: kv[1].total_ms, reverse=True)[:topk]
        total = sum(st.total_ms for st in self.stats.values())
        if not items or total <= 0:
            return items

        logger.info("---- op breakdown ----")
        for k, st in items:
            share = (st.total_ms / total) * 100.0
            logger.info(
                "%6.2f%% | total_ms=%9.3f | avg_ms=%7.3f | calls=%6d | %s",
                share, st.total_ms, st.avg_ms, st.calls, k,
            )
        logger.info("TOTAL: %.3f ms (accumulated)", total)
        return items

    def reset(self) -> None:
        self.stats.clear()
