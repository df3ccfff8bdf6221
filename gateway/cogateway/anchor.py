"""
CoGateway Anchor Collaborator

The redeem registry never verifies cross-chain proofs itself. It trusts a
state-root provider for two facts: the latest anchored block height of the
other chain, and the state root anchored at a given height. The registry
records the height at accept time and compares it with the latest height to
decide whether a declared redeem has timed out.

Anchor keeps the most recent `max_state_roots` roots in insertion order,
dropping the oldest once full; heights never move backwards and each height
is anchored at most once.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, Optional, Protocol, runtime_checkable

from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.validation import Validators

log = get_logger("anchor", GatewayLayer.ANCHOR)


@runtime_checkable
class StateRootProvider(Protocol):
    """What the registry needs from the anchoring subsystem."""

    def latest_block_height(self) -> int:
        ...

    def get_state_root(self, block_height: int) -> Optional[str]:
        ...


class Anchor:
    """In-memory state-root anchor."""

    def __init__(
        self,
        initial_block_height: int = 0,
        initial_state_root: Optional[str] = None,
        max_state_roots: int = 100,
    ):
        if max_state_roots < 1:
            raise ValueError("max_state_roots must be at least 1")
        self._max_state_roots = max_state_roots
        self._roots: "OrderedDict[int, str]" = OrderedDict()
        self._latest_height = initial_block_height
        self._lock = threading.Lock()
        if initial_state_root is not None:
            self._roots[initial_block_height] = self._check_root(initial_state_root)

    @staticmethod
    def _check_root(state_root: str) -> str:
        result = Validators.validate_hash(state_root, "state_root")
        result.raise_if_invalid()
        return result.sanitized_value

    def anchor_state_root(self, block_height: int, state_root: str) -> None:
        """Record a verified state root at a new height."""
        root = self._check_root(state_root)
        with self._lock:
            if block_height < self._latest_height or block_height in self._roots:
                raise ValueError(
                    f"block height {block_height} must be greater than "
                    f"latest anchored height {self._latest_height}"
                )
            self._roots[block_height] = root
            self._latest_height = block_height
            while len(self._roots) > self._max_state_roots:
                self._roots.popitem(last=False)
        log.info("state root anchored", block_height=block_height, state_root=root)

    def advance_to(self, block_height: int) -> None:
        """Move the latest height forward without a root (height-only anchoring)."""
        with self._lock:
            if block_height < self._latest_height:
                raise ValueError("block height cannot move backwards")
            self._latest_height = block_height

    def latest_block_height(self) -> int:
        with self._lock:
            return self._latest_height

    def get_state_root(self, block_height: int) -> Optional[str]:
        with self._lock:
            return self._roots.get(block_height)

    def state_roots(self) -> Dict[int, str]:
        with self._lock:
            return dict(self._roots)
