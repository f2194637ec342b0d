# minigrad_fw/backend/base.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple


class Backend:
    """
    Array dispatch interface.

    op_call:     functional form, returns a new payload
    op_call_out: out-parameter form, writes into outputs (in-place updates)
    """
    def op_call(self, op: str, inputs: List[Any], attrs: Optional[Dict[str, Any]] = None) -> Any:
        raise NotImplementedError

    def op_call_out(self, op: str, inputs: List[Any], outputs: List[Any],
                    attrs: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError

    def as_payload(self, x: Any) -> Any:
        raise NotImplementedError

    def zeros_like(self, x: Any) -> Any:
        raise NotImplementedError

    def ones_like(self, x: Any) -> Any:
        raise NotImplementedError

    def broadcast_shape(self, a: Sequence[int], b: Sequence[int], what: str) -> Tuple[int, ...]:
        raise NotImplementedError

    def promote_dtype(self, a: Any, b: Any) -> Any:
        raise NotImplementedError
