# backoffice/services/users.py
# User listing and role management for the settings screen.

from flask import current_app
from supabase import create_client
from backoffice import db
from backoffice.models import User
from backoffice.jwt_auth import VALID_ROLES
from backoffice.services.audit import record_audit


def _supabase_admin():
    """Returns a service-role Supabase client, or None when not configured."""
    url = current_app.config.get('SUPABASE_URL')
    key = current_app.config.get('SUPABASE_SERVICE_ROLE_KEY')
    if not url or not key:
        return None
    return create_client(url, key)


def get_all_users():
    try:
        users = User.query.order_by(User.username).all()
        return {"success": True, "users": [u.to_dict() for u in users]}
    except Exception as e:
        current_app.logger.error(f"Error fetching users: {str(e)}", exc_info=True)
        return {"success": False, "error": "Error al obtener los usuarios."}, 500


def update_user_role(user_id, new_role, actor_id=None):
    """
    Updates a user's role locally and in Supabase app_metadata.

    The Supabase update is required: JIT provisioning copies the role from
    the token on every request, so a local-only change would be reverted on
    the user's next call.
    """
    if new_role not in VALID_ROLES:
        return {"success": False, "error": f"Rol inválido. Valores permitidos: {', '.join(VALID_ROLES)}"}, 400

    user = db.session.get(User, user_id)
    if not user:
        return {"success": False, "error": "Usuario no encontrado."}, 404

    supabase = _supabase_admin()
    if supabase is None:
        return {"success": False, "error": "Supabase no está configurado para administrar roles."}, 500

    try:
        supabase.auth.admin.update_user_by_id(user_id, {"app_metadata": {"role": new_role}})
    except Exception as e:
        current_app.logger.error(f"Failed to update Supabase role for {user.username}: {str(e)}")
        return {"success": False, "error": "No se pudo actualizar el rol en el proveedor de autenticación."}, 502

    previous_role = user.role
    try:
        user.role = new_role
        record_audit('configuracion', 'role_changed', 'users', user_id, actor_id,
                     {'from': previous_role, 'to': new_role})
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving role for {user.username}: {str(e)}", exc_info=True)
        return {"success": False, "error": "No se pudo guardar el rol."}, 500

    current_app.logger.info(f"Role for {user.username} changed: {previous_role} -> {new_role}")
    return {"success": True, "data": user.to_dict()}
