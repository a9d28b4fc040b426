# backoffice/services/errors.py
"""
Maps database, auth and provider errors to user-facing Spanish messages.

Raw error text never reaches the client: callers log the original (only when
the app runs in debug mode) and return the friendly message instead.
"""

from datetime import datetime, timezone
from flask import current_app
from backoffice import db

UNEXPECTED_MESSAGE = 'Ocurrió un error inesperado. Por favor intenta nuevamente.'
GENERIC_MESSAGE = 'Ocurrió un error. Por favor intenta nuevamente o contacta al soporte.'

MESSAGES = {
    'unique': 'Este registro ya existe. Por favor verifica los datos ingresados.',
    'foreign_key': 'No se puede completar la operación debido a registros relacionados.',
    'not_null': 'Faltan datos requeridos. Por favor completa todos los campos obligatorios.',
    'check': 'Los datos ingresados no cumplen con las validaciones requeridas.',
    'permission': 'No tienes permisos para realizar esta acción.',
    'session_expired': 'Tu sesión ha expirado. Por favor inicia sesión nuevamente.',
    'invalid_credentials': 'Credenciales incorrectas. Por favor verifica tu correo y contraseña.',
    'email_not_confirmed': 'Por favor confirma tu correo electrónico antes de iniciar sesión.',
    'user_exists': 'Ya existe una cuenta con este correo electrónico.',
    'weak_password': 'La contraseña no cumple con los requisitos de seguridad.',
    'rate_limit': 'Demasiados intentos. Por favor espera un momento antes de intentar nuevamente.',
    'network': 'Error de conexión. Por favor verifica tu conexión a internet.',
    'storage': 'Error al procesar el archivo. Por favor intenta nuevamente.',
    'file_too_large': 'El archivo es demasiado grande. Por favor selecciona un archivo más pequeño.',
    'unknown': GENERIC_MESSAGE,
}

HTTP_STATUS = {
    'unique': 409,
    'foreign_key': 409,
    'not_null': 400,
    'check': 400,
    'permission': 403,
    'session_expired': 401,
    'invalid_credentials': 401,
    'email_not_confirmed': 401,
    'user_exists': 409,
    'weak_password': 400,
    'rate_limit': 429,
    'network': 502,
    'storage': 502,
    'file_too_large': 413,
}

# Postgres SQLSTATE codes, then substrings matched against the raw message
# exactly as the database reports it.
_CODE_RULES = [
    ('unique', '23505', ('duplicate key', 'already exists')),
    ('foreign_key', '23503', ('foreign key',)),
    ('not_null', '23502', ('not-null constraint', 'null value')),
    ('check', '23514', ('check constraint',)),
]

# Substrings matched against the lower-cased message, in priority order.
_MESSAGE_RULES = [
    ('permission', ('row-level security', 'rls', 'policy')),
    ('session_expired', ('jwt', 'token', 'expired', 'invalid claim')),
    ('invalid_credentials', ('invalid login credentials',)),
    ('email_not_confirmed', ('email not confirmed',)),
    ('user_exists', ('user already registered', 'user already exists')),
    ('weak_password', ('password',)),
    ('rate_limit', ('rate limit', 'too many requests')),
    ('network', ('network', 'fetch', 'connection')),
    ('storage', ('storage', 'bucket')),
    ('file_too_large', ('size', 'too large')),
]

# SQLite reports constraint failures in its own words.
_SQLITE_RULES = [
    ('unique', 'unique constraint failed'),
    ('foreign_key', 'foreign key constraint failed'),
    ('not_null', 'not null constraint failed'),
    ('check', 'check constraint failed'),
]


def _error_parts(error):
    """Returns (code, message) for exceptions, SQLAlchemy wrappers and plain dicts."""
    if isinstance(error, dict):
        return str(error.get('code') or ''), str(error.get('message') or '')

    orig = getattr(error, 'orig', None)
    code = (
        getattr(orig, 'sqlstate', None)
        or getattr(orig, 'pgcode', None)
        or getattr(error, 'code', None)
        or ''
    )
    message = str(orig) if orig is not None else str(error)
    return str(code), message


def classify_error(error):
    """Returns the taxonomy key for an error, or None when there is no error."""
    if not error:
        return None

    code, message = _error_parts(error)

    for kind, pg_code, needles in _CODE_RULES:
        if code == pg_code or any(needle in message for needle in needles):
            return kind

    lowered = message.lower()
    for kind, needle in _SQLITE_RULES:
        if needle in lowered:
            return kind

    for kind, needles in _MESSAGE_RULES:
        if any(needle in lowered for needle in needles):
            return kind

    return 'unknown'


def get_user_friendly_error(error):
    kind = classify_error(error)
    if kind is None:
        return UNEXPECTED_MESSAGE
    return MESSAGES[kind]


def sanitize_error_for_logging(error):
    """Only the error code and whether a message exists; never the text itself."""
    code, message = _error_parts(error) if error else ('', '')
    return {
        'code': code or None,
        'has_message': bool(message),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


def handle_service_error(error, context, status=None):
    """
    Rolls back the session, logs the failure and returns the
    (error_dict, status_code) tuple the blueprints expect.
    """
    db.session.rollback()

    if current_app.debug:
        current_app.logger.error(f"{context}: {error}", exc_info=True)
    else:
        current_app.logger.error(f"{context}: {sanitize_error_for_logging(error)}")

    kind = classify_error(error) or 'unknown'
    return {"success": False, "error": get_user_friendly_error(error)}, status or HTTP_STATUS.get(kind, 500)
