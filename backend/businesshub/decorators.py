# Overview: Route guards that resolve the caller's session and check CRM permissions.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _unauthorized(message: str):
    return jsonify({"error": message}), 401


def _token_from_request() -> str | None:
    """Pull the bearer token out of the Authorization header, if any."""
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer":
        return None
    return token.strip() or None


def _request_meta() -> dict:
    return {
        "resource": request.path,
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def require_auth(f):
    """
    Resolve the bearer token into a session and bind the caller to the request.

    On success the handler sees:
    - g.current_user: the signed-in User
    - g.org_id: the organization every query must be scoped to
    - g.session_context: the SessionContext (used by logout-others)

    Anything else (no header, unknown/expired/revoked token, deactivated
    user or organization, session without an org) is answered with 401.
    """
    @wraps(f)
    def guarded(*args, **kwargs):
        token = _token_from_request()
        if token is None:
            return _unauthorized("Authentication required")

        context = session_service.validate_session(token)
        if context is None:
            return _unauthorized("Invalid or expired token")

        if not context.org_id:
            permission_service.log_security_event(
                user_id=context.user.id if context.user else None,
                event_type="TENANT_CONTEXT_MISSING",
                success=False,
                action=request.method,
                reason="Session missing org_id",
                org_id=None,
                **_request_meta(),
            )
            return _unauthorized("Invalid session: missing tenant context")

        g.current_user = context.user
        g.org_id = context.org_id
        g.session_context = context
        return f(*args, **kwargs)

    return guarded


def require_permission(permission_code: str):
    """
    Reject the request with 403 unless the caller holds permission_code.

    Must sit below @require_auth. The permission service records the
    PERMISSION_DENIED event against the caller's organization.
    """
    def decorator(f):
        @wraps(f)
        def guarded(*args, **kwargs):
            if getattr(g, "current_user", None) is None or getattr(g, "org_id", None) is None:
                return _unauthorized("Authentication required")

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    permission_code=permission_code,
                    org_id=g.org_id,
                    **_request_meta(),
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return guarded
    return decorator
