"""
Authorization Gate

The engine asks a gate whether a caller may perform a privileged operation
before every such mutation. `ACL` is a role-based reference gate with an
`ANY_ENTITY` wildcard.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

from ..constants import ANY_ENTITY
from ..exceptions import UnauthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


class AuthorizationGate(ABC):
    """Decides who may call privileged operations."""

    @abstractmethod
    def is_authorized(self, caller: str, role: str) -> bool:
        """True if *caller* holds *role*."""


class ACL(AuthorizationGate):
    """
    Role permissions keyed by (entity, role).

    Each role has a manager, set when the role is first created, who alone
    may grant or revoke it afterwards.
    """

    def __init__(self):
        self._permissions: Dict[str, Set[str]] = {}   # role → entities
        self._managers: Dict[str, str] = {}           # role → manager

    def create_permission(self, entity: str, role: str, manager: str) -> None:
        """Create *role*, grant it to *entity*, and set its *manager*."""
        if role in self._managers:
            raise UnauthorizedError(f"Permission {role[:10]}… already exists")
        self._managers[role] = manager
        self._permissions[role] = {entity}
        logger.info(f"Permission created: {role[:10]}… → {entity} (manager {manager})")

    def grant_permission(self, sender: str, entity: str, role: str) -> None:
        self._require_manager(sender, role)
        self._permissions[role].add(entity)
        logger.info(f"Permission granted: {role[:10]}… → {entity}")

    def revoke_permission(self, sender: str, entity: str, role: str) -> None:
        self._require_manager(sender, role)
        self._permissions[role].discard(entity)
        logger.info(f"Permission revoked: {role[:10]}… from {entity}")

    def get_manager(self, role: str) -> Optional[str]:
        return self._managers.get(role)

    def has_permission(self, entity: str, role: str) -> bool:
        holders = self._permissions.get(role, set())
        return entity in holders or ANY_ENTITY in holders

    def is_authorized(self, caller: str, role: str) -> bool:
        return self.has_permission(caller, role)

    def _require_manager(self, sender: str, role: str) -> None:
        manager = self._managers.get(role)
        if manager is None:
            raise UnauthorizedError(f"Permission {role[:10]}… does not exist")
        if sender != manager:
            raise UnauthorizedError(f"{sender} is not the manager of {role[:10]}…")

    def to_dict(self) -> Dict[str, Any]:
        return {
            role: {
                "manager": self._managers[role],
                "entities": sorted(entities),
            }
            for role, entities in self._permissions.items()
        }
