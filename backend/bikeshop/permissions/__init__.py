# Overview: Capability system package.
# Re-exports all public APIs.

from .categories import CapabilityCategory
from .definitions import (
    Capability,
    CAPABILITY_DEFINITIONS,
    INVENTORY_CAPABILITIES,
    CLIENT_CAPABILITIES,
    SALES_CAPABILITIES,
    WORKSHOP_CAPABILITIES,
    SETTINGS_CAPABILITIES,
    STAFF_CAPABILITIES,
)
from .roles import DEFAULT_ROLE_CAPABILITIES, ROLE_ADMIN, ROLE_USER, VALID_ROLES
from .helpers import (
    get_all_capability_codes,
    get_capabilities_by_category,
    get_capability_definition,
    parse_capability,
)

__all__ = [
    "Capability",
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "INVENTORY_CAPABILITIES",
    "CLIENT_CAPABILITIES",
    "SALES_CAPABILITIES",
    "WORKSHOP_CAPABILITIES",
    "SETTINGS_CAPABILITIES",
    "STAFF_CAPABILITIES",
    "DEFAULT_ROLE_CAPABILITIES",
    "ROLE_ADMIN",
    "ROLE_USER",
    "VALID_ROLES",
    "get_all_capability_codes",
    "get_capabilities_by_category",
    "get_capability_definition",
    "parse_capability",
]
