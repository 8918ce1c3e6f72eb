# Overview: Role names and the capabilities each role holds by default.

from .definitions import Capability


ROLE_USER = "user"
ROLE_ADMIN = "admin"
VALID_ROLES = (ROLE_USER, ROLE_ADMIN)


DEFAULT_ROLE_CAPABILITIES = {
    ROLE_ADMIN: frozenset(Capability),
    ROLE_USER: frozenset({
        Capability.MANAGE_BIKES,
        Capability.MANAGE_CLIENTS,
        Capability.RECORD_SALES,
        Capability.MANAGE_JOBS,
        Capability.EDIT_OPENING_HOURS,
        Capability.EDIT_BIKE_OPTIONS,
    }),
}
