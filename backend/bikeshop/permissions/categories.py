# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    CLIENTS = "CLIENTS"
    SALES = "SALES"
    WORKSHOP = "WORKSHOP"
    SETTINGS = "SETTINGS"
    STAFF = "STAFF"
