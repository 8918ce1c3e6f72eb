# Overview: Flask API routes for sign-up, sign-in, sign-out and password reset.

"""
Authentication API routes

- Sign-up creates a user with role "user"
- Sign-in returns a bearer token plus the user's capabilities
- Sign-out revokes the token and clears the request context
- Password reset always answers 202 so accounts cannot be probed
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.auth_service import AuthError, PasswordValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _capability_codes(user_id: str) -> list[str]:
    return sorted(c.value for c in permission_service.get_user_capabilities(user_id))


@auth_bp.post("/signup")
def signup_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        name = data.get("name")

        if not all([email, password, name]):
            return jsonify({"error": "email, password and name required"}), 400

        user = auth_service.sign_up(email, password, name, phone=data.get("phone"))
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "user": user.to_dict(),
            "capabilities": _capability_codes(user.id),
            "token": token,
            "session": session.to_dict(),
        }), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource="auth",
                reason="Invalid credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        return jsonify({
            "user": user.to_dict(),
            "capabilities": _capability_codes(user.id),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token and drop the request's identity."""
    try:
        user_id = g.current_user.id
        session_service.revoke_session(bearer_token(), reason="logout")
        permission_service.log_security_event(
            user_id=user_id,
            event_type="LOGOUT",
            success=True,
            resource="auth",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        g.pop("current_user", None)
        g.pop("session_context", None)
        g.pop("requester", None)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, resolved role and capabilities (for hiding UI the user cannot use)."""
    context = g.session_context
    return jsonify({
        "user": context.user.to_dict(),
        "role": context.role,
        "capabilities": _capability_codes(context.user_id),
        "session": context.session.to_dict(),
    })


@auth_bp.post("/password-reset")
def password_reset_request_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        if not email:
            return jsonify({"error": "email required"}), 400

        auth_service.request_password_reset(email)
        permission_service.log_security_event(
            user_id=None,
            event_type="PASSWORD_RESET_REQUESTED",
            success=True,
            resource="auth",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"message": "If the account exists, a reset link has been sent"}), 202

    except Exception:
        current_app.logger.exception("Failed to issue password reset")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/password-reset/confirm")
def password_reset_confirm_route():
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("token")
        password = data.get("password")
        if not all([token, password]):
            return jsonify({"error": "token and password required"}), 400

        user = auth_service.confirm_password_reset(token, password)
        return jsonify({"message": "Password updated", "user_id": user.id}), 200

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
