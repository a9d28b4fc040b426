# backoffice/services/settings.py
# Broker settings: a single row holding the brokerage's identity.

from flask import current_app
from backoffice import db
from backoffice.models import BrokerSettings
from backoffice.services.errors import handle_service_error

EDITABLE_FIELDS = ('name', 'identification', 'phone', 'email', 'address', 'logo_url')


def get_broker_settings_row():
    return BrokerSettings.query.order_by(BrokerSettings.updated_at.desc()).first()


def broker_display_name():
    settings = get_broker_settings_row()
    if settings and settings.name:
        return settings.name
    return current_app.config['BROKER_DEFAULT_NAME']


def get_broker_settings():
    settings = get_broker_settings_row()
    if settings is None:
        return {"success": True, "data": {"name": current_app.config['BROKER_DEFAULT_NAME']}}
    return {"success": True, "data": settings.to_dict()}


def upsert_broker_settings(data):
    """Creates the settings row on first save and updates it afterwards."""
    if 'name' in data and not (data.get('name') or '').strip():
        return {"success": False, "error": "El nombre del corredor es obligatorio."}, 400

    try:
        settings = get_broker_settings_row()
        if settings is None:
            settings = BrokerSettings(name=data.get('name') or current_app.config['BROKER_DEFAULT_NAME'])
            db.session.add(settings)

        for field in EDITABLE_FIELDS:
            if field in data:
                setattr(settings, field, data[field])

        db.session.commit()
        return {"success": True, "data": settings.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error saving broker settings")
