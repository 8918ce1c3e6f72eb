# Overview: Utility functions for capability lookups and validation.

from .definitions import CAPABILITY_DEFINITIONS, Capability


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap.value for cap, *_ in CAPABILITY_DEFINITIONS]


def get_capabilities_by_category(category):
    """Get all capabilities in a category."""
    return [defn for defn in CAPABILITY_DEFINITIONS if defn[3] == category]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap, name, description, category in CAPABILITY_DEFINITIONS:
        if cap.value == code:
            return {
                "code": cap.value,
                "name": name,
                "description": description,
                "category": category,
            }
    return None


def parse_capability(code) -> Capability:
    """
    Convert a code string to a Capability.

    Raises ValueError for unknown codes so callers never fall back to a
    string comparison.
    """
    if isinstance(code, Capability):
        return code
    try:
        return Capability(str(code).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown capability: {code}")
