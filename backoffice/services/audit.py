# backoffice/services/audit.py

from flask import current_app
from backoffice import db
from backoffice.models import AuditLog


def record_audit(module, action, record_type=None, record_id=None, user_id=None, details=None):
    """
    Adds an audit row to the current session. The caller owns the commit,
    so the entry lands atomically with the change it describes.
    """
    entry = AuditLog(
        module=module,
        action=action,
        record_type=record_type,
        record_id=record_id,
        user_id=user_id,
        details=details or {},
    )
    db.session.add(entry)
    return entry


def get_audit_logs(module=None, action=None, limit=200):
    try:
        query = AuditLog.query.order_by(AuditLog.created_at.desc())
        if module:
            query = query.filter_by(module=module)
        if action:
            query = query.filter_by(action=action)
        logs = query.limit(min(int(limit), 1000)).all()
        return {"success": True, "data": [log.to_dict() for log in logs]}
    except Exception as e:
        current_app.logger.error(f"Error fetching audit logs: {str(e)}", exc_info=True)
        return {"success": False, "error": "Error al obtener el registro de auditoría."}, 500
