# Overview: All capability definitions organized by category.
# Each definition is: (capability, name, description, category)

import enum

from .categories import CapabilityCategory


class Capability(enum.Enum):
    """
    Feature-level capabilities a staff member can hold.

    Values are the stable codes stored in capability_overrides and returned
    to clients.
    """
    MANAGE_BIKES = "MANAGE_BIKES"
    MANAGE_CLIENTS = "MANAGE_CLIENTS"
    RECORD_SALES = "RECORD_SALES"
    MANAGE_JOBS = "MANAGE_JOBS"
    EDIT_BUSINESS_INFO = "EDIT_BUSINESS_INFO"
    EDIT_OPENING_HOURS = "EDIT_OPENING_HOURS"
    EDIT_BIKE_OPTIONS = "EDIT_BIKE_OPTIONS"
    EDIT_THEME = "EDIT_THEME"
    MANAGE_STAFF = "MANAGE_STAFF"


# -- INVENTORY --

INVENTORY_CAPABILITIES = [
    (
        Capability.MANAGE_BIKES,
        "Manage Bikes",
        "Browse, edit and look up bikes by serial number",
        CapabilityCategory.INVENTORY,
    ),
]


# -- CLIENTS --

CLIENT_CAPABILITIES = [
    (
        Capability.MANAGE_CLIENTS,
        "Manage Clients",
        "Create, edit and delete client records",
        CapabilityCategory.CLIENTS,
    ),
]


# -- SALES --

SALES_CAPABILITIES = [
    (
        Capability.RECORD_SALES,
        "Record Sales",
        "Record bike sales and view recent sales",
        CapabilityCategory.SALES,
    ),
]


# -- WORKSHOP --

WORKSHOP_CAPABILITIES = [
    (
        Capability.MANAGE_JOBS,
        "Manage Jobs",
        "Create repair jobs, scan job sheets and update job status",
        CapabilityCategory.WORKSHOP,
    ),
]


# -- SETTINGS --

SETTINGS_CAPABILITIES = [
    (
        Capability.EDIT_BUSINESS_INFO,
        "Edit Business Info",
        "Edit shop name, contact details and feature toggles",
        CapabilityCategory.SETTINGS,
    ),
    (
        Capability.EDIT_OPENING_HOURS,
        "Edit Opening Hours",
        "Edit weekly opening hours",
        CapabilityCategory.SETTINGS,
    ),
    (
        Capability.EDIT_BIKE_OPTIONS,
        "Edit Bike Options",
        "Edit the brand, color and size pick lists",
        CapabilityCategory.SETTINGS,
    ),
    (
        Capability.EDIT_THEME,
        "Edit Theme",
        "Change the application color theme",
        CapabilityCategory.SETTINGS,
    ),
]


# -- STAFF --

STAFF_CAPABILITIES = [
    (
        Capability.MANAGE_STAFF,
        "Manage Staff",
        "List users, change roles and capability overrides",
        CapabilityCategory.STAFF,
    ),
]


CAPABILITY_DEFINITIONS = (
    INVENTORY_CAPABILITIES
    + CLIENT_CAPABILITIES
    + SALES_CAPABILITIES
    + WORKSHOP_CAPABILITIES
    + SETTINGS_CAPABILITIES
    + STAFF_CAPABILITIES
)

# Every enum member must be defined exactly once
assert sorted(c.value for c, *_ in CAPABILITY_DEFINITIONS) == sorted(c.value for c in Capability)
