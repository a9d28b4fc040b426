# backoffice/services/attachments.py
# Attachment metadata. The files themselves live in Supabase Storage; the
# browser uploads them directly and this service only keeps the path.

from flask import current_app
from supabase import create_client
from backoffice import db
from backoffice.models import Attachment, Client
from backoffice.services.errors import handle_service_error, get_user_friendly_error


def _storage_bucket():
    url = current_app.config.get('SUPABASE_URL')
    key = current_app.config.get('SUPABASE_SERVICE_ROLE_KEY')
    if not url or not key:
        return None
    return create_client(url, key).storage.from_(current_app.config['ATTACHMENTS_BUCKET'])


def list_attachments(client_id, policy_id=None):
    query = Attachment.query.filter_by(client_id=client_id)
    if policy_id:
        query = query.filter_by(policy_id=policy_id)
    attachments = query.order_by(Attachment.created_at.desc()).all()
    return {"success": True, "data": [a.to_dict() for a in attachments]}


def register_attachment(client_id, data, actor_id=None):
    if db.session.get(Client, client_id) is None:
        return {"success": False, "error": "Cliente no encontrado."}, 404
    if not data.get('file_name') or not data.get('file_path'):
        return {"success": False, "error": "file_name y file_path son obligatorios."}, 400

    size = data.get('file_size') or 0
    if size > current_app.config['MAX_ATTACHMENT_BYTES']:
        return {"success": False, "error": get_user_friendly_error({'message': 'file too large'})}, 413

    try:
        attachment = Attachment(
            client_id=client_id,
            policy_id=data.get('policy_id'),
            file_name=data['file_name'],
            file_path=data['file_path'],
            file_size=size,
            mime_type=data.get('mime_type'),
            uploaded_by=actor_id,
        )
        db.session.add(attachment)
        db.session.commit()
        return {"success": True, "data": attachment.to_dict()}
    except Exception as e:
        return handle_service_error(e, "Error registering attachment")


def get_signed_url(attachment_id):
    """Short-lived download URL for one attachment."""
    attachment = db.session.get(Attachment, attachment_id)
    if attachment is None:
        return {"success": False, "error": "Archivo no encontrado."}, 404

    bucket = _storage_bucket()
    if bucket is None:
        return {"success": False, "error": "El almacenamiento de archivos no está configurado."}, 500

    ttl = current_app.config['SIGNED_URL_TTL_SECONDS']
    try:
        signed = bucket.create_signed_url(attachment.file_path, ttl)
    except Exception as e:
        current_app.logger.error(f"Storage error signing {attachment.file_path}: {e}")
        return {"success": False, "error": get_user_friendly_error({'message': 'storage error'})}, 502

    url = signed.get('signedURL') or signed.get('signedUrl')
    return {"success": True, "url": url, "expires_in": ttl, "file_name": attachment.file_name}


def delete_attachment(attachment_id):
    """Removes the stored object first, then the metadata row."""
    attachment = db.session.get(Attachment, attachment_id)
    if attachment is None:
        return {"success": False, "error": "Archivo no encontrado."}, 404

    bucket = _storage_bucket()
    if bucket is not None:
        try:
            bucket.remove([attachment.file_path])
        except Exception as e:
            current_app.logger.error(f"Storage error removing {attachment.file_path}: {e}")
            return {"success": False, "error": get_user_friendly_error({'message': 'storage error'})}, 502
    else:
        current_app.logger.warning(f"Storage not configured; only metadata removed for {attachment.file_path}")

    try:
        db.session.delete(attachment)
        db.session.commit()
        return {"success": True}
    except Exception as e:
        return handle_service_error(e, f"Error deleting attachment {attachment_id}")
