# backoffice/utils/general.py
"""
General-purpose helpers shared by the blueprints and services.
"""

import math
import re
from datetime import date, datetime
from flask import jsonify, g

ALLOWED_EXTENSIONS = {'xlsx', 'xls'}
MONTH_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _handle_service_result(result, default_error_status=500):
    """
    Parses the result from a service function.
    If it's a tuple (error_dict, status_code), it uses the custom status code.
    Otherwise, it assumes success (status 200) or uses the default error status.

    Adds 'error_code' to error responses for structured frontend handling.
    """
    if isinstance(result, tuple) and len(result) == 2:
        payload, status_code = result
        if not payload.get("success", True):
            payload["error_code"] = payload.get("error_code", status_code)
        return jsonify(convert_to_json_safe(payload)), status_code

    if result.get("success"):
        return jsonify(convert_to_json_safe(result)), 200

    result["error_code"] = result.get("error_code", default_error_status)
    return jsonify(result), default_error_status


def convert_to_json_safe(obj):
    """
    Recursively converts values to JSON-safe types.
    NaN and infinite floats become None; dates become ISO strings.
    """
    if isinstance(obj, dict):
        return {k: convert_to_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_to_json_safe(i) for i in obj]
    elif isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    elif isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


def parse_date(value):
    """
    Accepts 'YYYY-MM-DD' strings (or ISO datetimes) and date objects.
    Returns None for empty input; raises ValueError for malformed strings.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_float(value, default=None):
    if value is None or value == '':
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{value}' no es un número válido")
    if math.isnan(result):
        return default
    return result


def parse_month(value):
    """Validates a 'YYYY-MM' ledger month."""
    if not value or not MONTH_PATTERN.match(str(value)):
        raise ValueError("El mes debe tener el formato YYYY-MM")
    return str(value)


def current_actor_id():
    user = getattr(g, 'current_user', None)
    return user.id if user else None
