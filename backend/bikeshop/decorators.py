# Overview: Request decorators for API routes: authentication, capabilities, feature toggles.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Capability
from .services import session_service, permission_service, settings_service
from .services.access_policy import Requester
from .services.permission_service import CapabilityDeniedError


def _is_authenticated() -> bool:
    return getattr(g, "session_context", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session and establish the request context.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext for this request
    - g.requester: the Requester the access policy evaluates

    Returns 401 if the header is missing or the token is invalid, expired,
    idle too long, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.requester = Requester(uid=context.user_id, role=context.role)

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: Capability):
    """Require the authenticated user to hold a capability (role default or override)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_capability(
                    user_id=g.current_user.id,
                    capability=capability,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except CapabilityDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability.value,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_feature(name: str):
    """Reject the request when the shop has switched the feature off."""
    if name not in settings_service.FEATURES:
        raise ValueError(f"Unknown feature '{name}'")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not settings_service.is_feature_enabled(name):
                return jsonify({"error": "Feature disabled", "feature": name}), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator
