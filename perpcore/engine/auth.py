"""
Authorization collaborators.

The engine only calls ``require(principal)`` and expects an
``UnauthorizedError`` when the principal may not act.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Protocol, Set

from ..exceptions import UnauthorizedError


class Authorizer(Protocol):
    """Protocol that authorization providers must implement."""

    def require(self, principal: str) -> None: ...


class AllowAllAuthorizer:
    """Accepts any non-empty principal.  Used when the host authenticates upstream."""

    def require(self, principal: str) -> None:
        if not principal:
            raise UnauthorizedError(principal, "empty principal")


class AllowListAuthorizer:
    """Accepts only principals present in an explicit allow list."""

    def __init__(self, principals: Optional[Iterable[str]] = None) -> None:
        self._allowed: Set[str] = set(principals or ())

    def allow(self, principal: str) -> None:
        self._allowed.add(principal)

    def revoke(self, principal: str) -> None:
        self._allowed.discard(principal)

    def require(self, principal: str) -> None:
        if principal not in self._allowed:
            raise UnauthorizedError(principal, "not in allow list")


class CallbackAuthorizer:
    """Delegates the decision to an injected ``verify_fn(principal) -> bool``."""

    def __init__(self, verify_fn: Callable[[str], bool]) -> None:
        self._verify_fn = verify_fn

    def require(self, principal: str) -> None:
        if not self._verify_fn(principal):
            raise UnauthorizedError(principal, "verification failed")
