"""
Role permission engine for memorial content mutations.

No dependency on other app packages; load a rule table with
PermissionEngine.from_yaml() and ask has_permission().
"""

from .engine import (
    CONDITIONS,
    PermissionConfig,
    PermissionConfigError,
    PermissionEngine,
    PermissionRule,
    UserPermissions,
    load_permission_config,
    parse_permission_config,
)

__all__ = [
    "CONDITIONS",
    "PermissionConfig",
    "PermissionConfigError",
    "PermissionEngine",
    "PermissionRule",
    "UserPermissions",
    "load_permission_config",
    "parse_permission_config",
]
