"""
JWT Authentication Middleware for Supabase Integration

Access tokens are issued by Supabase Auth in the browser; this module only
verifies them, builds a request-scoped user context and gates routes by role.
"""

import jwt
from functools import wraps
from dataclasses import dataclass
from flask import request, jsonify, g, current_app
from backoffice.services.jit_provisioning import ensure_user_synced, JITProvisioningError

# Role tiers, most to least privileged.
ROLE_FULL_ACCESS = 'acceso_total'
ROLE_EDIT_1 = 'revision_edicion_1'
ROLE_EDIT_2 = 'revision_edicion_2'
ROLE_READ_ONLY = 'revision'
VALID_ROLES = [ROLE_FULL_ACCESS, ROLE_EDIT_1, ROLE_EDIT_2, ROLE_READ_ONLY]


class JWTAuthError(Exception):
    """Custom exception for JWT authentication errors"""
    def __init__(self, message, status_code=401):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


@dataclass
class UserContext:
    """
    Lightweight user context extracted from the verified JWT.
    Stored on flask.g for the duration of one request only.
    """
    id: str          # 'sub' claim (Supabase UUID)
    email: str       # 'email' claim
    username: str    # user_metadata.username, or derived from the email
    role: str        # app_metadata.role, falling back to user_metadata.role

    @property
    def is_read_only(self):
        return self.role not in (ROLE_FULL_ACCESS, ROLE_EDIT_1, ROLE_EDIT_2)

    def can_access(self, module):
        allowed = current_app.config['MODULE_ROLES'].get(module)
        return allowed is None or self.role in allowed


def extract_token_from_header():
    """
    Extracts the JWT token from the Authorization header.

    Expected format: "Authorization: Bearer <token>"

    Raises:
        JWTAuthError: If Authorization header is missing or malformed
    """
    auth_header = request.headers.get('Authorization')

    if not auth_header:
        raise JWTAuthError("Missing Authorization header", 401)

    parts = auth_header.split()

    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise JWTAuthError("Invalid Authorization header format. Expected 'Bearer <token>'", 401)

    return parts[1]


def verify_supabase_token(token):
    """
    Verifies a Supabase JWT token (HS256, audience 'authenticated')
    and returns the decoded payload.
    """
    jwt_secret = current_app.config.get('SUPABASE_JWT_SECRET')

    if not jwt_secret:
        raise JWTAuthError("SUPABASE_JWT_SECRET not configured", 500)

    try:
        return jwt.decode(
            token,
            jwt_secret,
            algorithms=['HS256'],
            audience='authenticated',
            options={'verify_exp': True, 'verify_aud': True},
        )
    except jwt.ExpiredSignatureError:
        raise JWTAuthError("Token has expired", 401)
    except jwt.InvalidAudienceError:
        raise JWTAuthError("Invalid token audience", 401)
    except jwt.InvalidTokenError as e:
        raise JWTAuthError(f"Invalid token: {str(e)}", 401)


def resolve_role(payload):
    """app_metadata is only writable by the service role, so it wins over user_metadata."""
    app_metadata = payload.get('app_metadata') or {}
    user_metadata = payload.get('user_metadata') or {}
    role = app_metadata.get('role') or user_metadata.get('role')
    if role not in VALID_ROLES:
        return ROLE_READ_ONLY
    return role


def create_user_context_from_token(payload):
    """
    Builds a UserContext from the JWT payload and syncs the user row
    (JIT provisioning). Provisioning failures fail the authentication.
    """
    user_id = payload.get('sub')
    email = payload.get('email')
    user_metadata = payload.get('user_metadata') or {}
    username = user_metadata.get('username')
    role = resolve_role(payload)

    if not user_id:
        raise JWTAuthError("Token missing 'sub' claim", 401)

    if not email:
        raise JWTAuthError("Token missing 'email' claim", 401)

    if not username:
        username = email.split('@')[0]

    try:
        ensure_user_synced(user_id=user_id, email=email, username=username, role=role)
    except JITProvisioningError as e:
        current_app.logger.error(
            f"Authentication failed for {username} ({user_id}): "
            f"JIT provisioning error: {e.message}"
        )
        raise JWTAuthError("User provisioning failed. Please contact support.", 401)

    return UserContext(id=user_id, email=email, username=username, role=role)


def require_jwt(f):
    """
    Decorator to protect routes with JWT authentication.

    Usage:
        @bp.route('/clients')
        @require_jwt
        def list_clients():
            user = g.current_user  # UserContext

    Error Responses:
        401: Missing, invalid, or expired token
        500: Server misconfiguration
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            token = extract_token_from_header()
            payload = verify_supabase_token(token)
            g.current_user = create_user_context_from_token(payload)
            g.is_authenticated = True
        except JWTAuthError as e:
            return jsonify({"success": False, "message": e.message}), e.status_code

        return f(*args, **kwargs)

    return decorated_function


def roles_required(*roles):
    """
    Decorator factory restricting a route to the given roles.
    Must be used AFTER @require_jwt.

    Usage:
        @bp.route('/finances/summary')
        @require_jwt
        @roles_required('acceso_total', 'revision_edicion_1')
        def summary(): ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)

            if not user:
                return jsonify({"success": False, "message": "Authentication required."}), 401

            if user.role not in roles:
                return jsonify({"success": False, "message": "No tienes permisos para realizar esta acción."}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def module_required(module):
    """Shortcut for roles_required() using the MODULE_ROLES table in the config."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)

            if not user:
                return jsonify({"success": False, "message": "Authentication required."}), 401

            if not user.can_access(module):
                return jsonify({"success": False, "message": "No tienes permisos para realizar esta acción."}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def write_required(f):
    """Rejects the read-only 'revision' tier on mutating routes. Must follow @require_jwt."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, 'current_user', None)

        if not user:
            return jsonify({"success": False, "message": "Authentication required."}), 401

        if user.is_read_only:
            return jsonify({"success": False, "message": "Tu rol solo permite consultar información."}), 403

        return f(*args, **kwargs)

    return decorated_function


def get_current_user():
    return getattr(g, 'current_user', None)
