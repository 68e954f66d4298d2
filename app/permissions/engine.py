"""
Role permission engine and YAML loader.

Gates content mutations (media, timeline, tributes, invitations, ...) for
memorial collaborators. Viewing is decided separately by the access
evaluator; this engine only answers "may this role do X to Y here?".

Key ideas:
- The rule table is data: role -> ordered list of (action, resource, condition).
- Load YAML once at startup and validate it fully (unknown roles, keys or
  condition names fail fast).
- Conditions are named predicates from a fixed registry, evaluated against a
  caller-supplied context (`is_creator`, `is_owner`, `role`, `field`, ...).
- Owners bypass the table entirely.
- First match wins: full wildcard, then partial wildcard, then exact.

This module is pure Python and has no FastAPI dependency.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

WILDCARD = "*"

Context = Mapping[str, Any]
Condition = Callable[[Context], bool]


# ---- Conditions ----------------------------------------------------------------------


def _is_creator(ctx: Context) -> bool:
    return bool(ctx.get("is_creator"))


def _owner_or_admin(ctx: Context) -> bool:
    return bool(ctx.get("is_owner")) or ctx.get("role") == "admin"


def _field_not_privacy(ctx: Context) -> bool:
    return ctx.get("field") != "privacy"


def _target_role_not_admin(ctx: Context) -> bool:
    return ctx.get("role") != "admin"


CONDITIONS: Mapping[str, Condition] = {
    "is_creator": _is_creator,
    "owner_or_admin": _owner_or_admin,
    "field_not_privacy": _field_not_privacy,
    "target_role_not_admin": _target_role_not_admin,
}

OWNER_ACTIONS: tuple[str, ...] = ("create", "read", "update", "delete", "approve", "reject", "moderate")


# ---- Data structures -----------------------------------------------------------------


@dataclass(frozen=True)
class PermissionRule:
    """Single rule: `action` on `resource`, optionally guarded by a named condition."""

    action: str
    resource: str
    condition: str | None = None

    @property
    def is_full_wildcard(self) -> bool:
        return self.action == WILDCARD and self.resource == WILDCARD

    def matches_partial(self, action: str, resource: str) -> bool:
        return (self.action == action and self.resource == WILDCARD) or (
            self.action == WILDCARD and self.resource == resource
        )

    def matches_exact(self, action: str, resource: str) -> bool:
        return self.action == action and self.resource == resource


@dataclass(frozen=True)
class UserPermissions:
    """What the caller is on this memorial: a collaborator role and/or the owner."""

    role: str | None
    is_owner: bool = False


@dataclass(frozen=True)
class PermissionConfig:
    """Fully-loaded rule table."""

    roles: Mapping[str, tuple[PermissionRule, ...]]


# ---- Loader --------------------------------------------------------------------------


class PermissionConfigError(ValueError):
    """Raised when the permissions YAML is invalid."""


_RULE_KEYS = frozenset({"action", "resource", "condition"})


def parse_permission_config(raw: Mapping[str, Any]) -> PermissionConfig:
    """
    Validate an already-parsed mapping.

    Expected shape:

        roles:
          contributor:
            - action: create
              resource: media
            - action: update
              resource: media
              condition: is_creator
    """

    roles_raw = raw.get("roles") or {}
    if not isinstance(roles_raw, dict):
        raise PermissionConfigError("roles must be a mapping")

    roles: dict[str, tuple[PermissionRule, ...]] = {}
    for role_name, rules_raw in roles_raw.items():
        if rules_raw is None:
            rules_raw = []
        if not isinstance(rules_raw, list):
            raise PermissionConfigError(f"role {role_name!r} must be a list of rules")

        rules: list[PermissionRule] = []
        for index, rule in enumerate(rules_raw):
            where = f"role {role_name!r} rule #{index}"
            if not isinstance(rule, dict):
                raise PermissionConfigError(f"{where} must be a mapping")
            unknown_keys = set(rule.keys()) - _RULE_KEYS
            if unknown_keys:
                raise PermissionConfigError(f"{where} has unknown keys: {sorted(unknown_keys)}")

            action = str(rule.get("action", "")).strip()
            resource = str(rule.get("resource", "")).strip()
            if not action or not resource:
                raise PermissionConfigError(f"{where} requires non-empty action and resource")

            condition = rule.get("condition")
            if condition is not None:
                condition = str(condition).strip()
                if condition not in CONDITIONS:
                    raise PermissionConfigError(f"{where} references unknown condition {condition!r}")

            rules.append(PermissionRule(action=action, resource=resource, condition=condition))

        roles[str(role_name)] = tuple(rules)

    return PermissionConfig(roles=roles)


def load_permission_config(path: Path) -> PermissionConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw = yaml.safe_load(raw_text) or {}
    if not isinstance(raw, dict):
        raise PermissionConfigError(f"permissions config must be a mapping: {path}")
    return parse_permission_config(raw)


# ---- Engine --------------------------------------------------------------------------


class PermissionEngine:
    """
    In-memory permission engine built from a validated PermissionConfig.

    Usage:
        engine = PermissionEngine.from_yaml(Path("config/permissions.yaml"))
        engine.has_permission(UserPermissions(role="contributor"), "update", "media", {"is_creator": True})
    """

    def __init__(self, config: PermissionConfig) -> None:
        self._config = config

    @classmethod
    def from_yaml(cls, path: Path) -> PermissionEngine:
        return cls(load_permission_config(path))

    @property
    def config(self) -> PermissionConfig:
        return self._config

    @property
    def roles(self) -> frozenset[str]:
        return frozenset(self._config.roles.keys())

    # ---- Matching -------------------------------------------------------------------

    def find_rule(self, role: str | None, action: str, resource: str) -> PermissionRule | None:
        """Return the rule that decides (role, action, resource), or None."""
        rules = self._config.roles.get(role or "", ())

        for rule in rules:
            if rule.is_full_wildcard:
                return rule
        for rule in rules:
            if rule.matches_partial(action, resource):
                return rule
        for rule in rules:
            if rule.matches_exact(action, resource):
                return rule
        return None

    # ---- Main decision API ----------------------------------------------------------

    def has_permission(
        self,
        user_permissions: UserPermissions,
        action: str,
        resource: str,
        context: Context | None = None,
    ) -> bool:
        if user_permissions.is_owner:
            return True

        rule = self.find_rule(user_permissions.role, action, resource)
        if rule is None:
            logger.debug("Permission: no rule role=%s action=%s resource=%s", user_permissions.role, action, resource)
            return False

        if rule.condition is None:
            return True

        allowed = CONDITIONS[rule.condition](context or {})
        logger.debug(
            "Permission: role=%s action=%s resource=%s condition=%s allowed=%s",
            user_permissions.role,
            action,
            resource,
            rule.condition,
            allowed,
        )
        return allowed

    # ---- Convenience helpers --------------------------------------------------------

    def can_create_content(self, user_permissions: UserPermissions, content_type: str) -> bool:
        return self.has_permission(user_permissions, "create", content_type)

    def can_edit_content(self, user_permissions: UserPermissions, content_type: str, is_creator: bool = False) -> bool:
        return self.has_permission(user_permissions, "update", content_type, {"is_creator": is_creator})

    def can_delete_content(self, user_permissions: UserPermissions, content_type: str, is_creator: bool = False) -> bool:
        return self.has_permission(user_permissions, "delete", content_type, {"is_creator": is_creator})

    def can_moderate(self, user_permissions: UserPermissions) -> bool:
        return self.has_permission(user_permissions, "moderate", "content")

    def can_invite_users(self, user_permissions: UserPermissions, target_role: str = "contributor") -> bool:
        return self.has_permission(user_permissions, "create", "invitation", {"role": target_role})

    def can_manage_collaborators(self, user_permissions: UserPermissions) -> bool:
        return self.has_permission(user_permissions, "update", "collaborator")

    def available_actions(self, user_permissions: UserPermissions, resource: str) -> list[str]:
        """
        Actions the role has *some* rule for on `resource`, in table order.

        Conditional rules are listed too; the final answer for a concrete
        object still comes from has_permission with the right context.
        """

        if user_permissions.is_owner:
            return list(OWNER_ACTIONS)

        actions: list[str] = []
        for rule in self._config.roles.get(user_permissions.role or "", ()):
            if rule.resource in (resource, WILDCARD) and rule.action not in actions:
                actions.append(rule.action)
        return actions
