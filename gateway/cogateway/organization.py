"""
CoGateway Organization and Authorization Gates

An organization owns a set of workers. Operations that only a worker may
perform (accepting redeem requests on behalf of the pool) are gated on
is_worker(); operations restricted to a party of record (progressing or
reverting a redeem) are gated on require_caller().

Workers expire: each one is registered with an expiration height and stops
being a worker once the anchored chain reaches it.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional

from gateway.cogateway.errors import Unauthorized
from gateway.cogateway.observability import GatewayLayer, get_logger
from gateway.cogateway.validation import ValidationError, normalize_address, same_address

log = get_logger("organization", GatewayLayer.ORGANIZATION)


class Organization:
    """
    Owner / admin / workers of a redeem pool.

    Only the owner or admin may change the worker set.
    """

    def __init__(self, owner: str, admin: Optional[str] = None):
        self.owner = normalize_address(owner, "owner")
        self.admin = normalize_address(admin, "admin") if admin else None
        self._workers: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _require_owner_or_admin(self, caller: str) -> None:
        allowed = [self.owner] + ([self.admin] if self.admin else [])
        if not any(same_address(caller, a) for a in allowed):
            raise Unauthorized("Only owner and admin are allowed to call.", caller=caller)

    def set_worker(self, worker: str, expiration_height: int, caller: str) -> None:
        self._require_owner_or_admin(caller)
        worker = normalize_address(worker, "worker")
        if expiration_height < 0:
            raise ValueError("expiration height must not be negative")
        with self._lock:
            self._workers[worker] = expiration_height
        log.info("worker set", worker=worker, expiration_height=expiration_height)

    def unset_worker(self, worker: str, caller: str) -> bool:
        self._require_owner_or_admin(caller)
        worker = normalize_address(worker, "worker")
        with self._lock:
            removed = self._workers.pop(worker, None) is not None
        log.info("worker unset", worker=worker, removed=removed)
        return removed

    def is_worker(self, worker: str, current_height: int) -> bool:
        """Worker registered and not expired at current_height."""
        try:
            worker = normalize_address(worker, "worker")
        except ValidationError:
            return False
        with self._lock:
            expiration = self._workers.get(worker)
        return expiration is not None and expiration > current_height


def require_worker(organization: Organization, caller: str, current_height: int) -> None:
    """Raise Unauthorized unless caller is an active worker."""
    if not organization.is_worker(caller, current_height):
        raise Unauthorized("Only whitelisted workers are allowed to call.", caller=caller)


def require_caller(caller: str, allowed: Iterable[Optional[str]], role: str) -> None:
    """Raise Unauthorized unless caller matches one of the parties of record."""
    if not any(a is not None and same_address(caller, a) for a in allowed):
        raise Unauthorized(f"Only the {role} may call.", caller=caller)
