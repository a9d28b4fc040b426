# backoffice/utils/__init__.py
"""
Utility functions package.

- general.py: request/response helpers shared by the blueprints
  (service result handling, upload validation, input parsing).
"""

from .general import allowed_file, parse_date, parse_float, parse_month, current_actor_id
from .general import _handle_service_result

__all__ = [
    'allowed_file',
    'parse_date',
    'parse_float',
    'parse_month',
    'current_actor_id',
    '_handle_service_result',
]
