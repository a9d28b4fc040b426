# backoffice/services/bulk.py
"""
Bulk deletion used by the multi-select tables.

Each id is deleted and committed on its own: a failure rolls back only that
row and the rest of the selection still goes through.
"""

from flask import current_app
from backoffice import db
from backoffice.models import (
    Client, Policy, Collection, CommissionBatch, CommissionEntry,
    CommissionAssignment, SalesOpportunity, DiscountCode,
)
from backoffice.services.errors import get_user_friendly_error

BULK_DELETABLE = {
    'clients': Client,
    'policies': Policy,
    'collections': Collection,
    'commission_batches': CommissionBatch,
    'commission_entries': CommissionEntry,
    'commission_assignments': CommissionAssignment,
    'opportunities': SalesOpportunity,
    'discount_codes': DiscountCode,
}


def bulk_delete(model, ids):
    """
    Returns:
        dict: {"deleted": [ids], "failed": [{"id", "error"}]}
    """
    deleted, failed = [], []

    for record_id in ids:
        try:
            record = db.session.get(model, record_id)
            if record is None:
                failed.append({"id": record_id, "error": "Registro no encontrado."})
                continue
            db.session.delete(record)
            db.session.commit()
            deleted.append(record_id)
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"Bulk delete of {model.__tablename__} {record_id} failed: {e}")
            failed.append({"id": record_id, "error": get_user_friendly_error(e)})

    return {"deleted": deleted, "failed": failed}


def bulk_delete_resource(resource, ids):
    model = BULK_DELETABLE.get(resource)
    if model is None:
        return {"success": False, "error": f"Recurso no soportado: {resource}"}, 400
    if not isinstance(ids, list) or not ids:
        return {"success": False, "error": "Debes enviar una lista de ids."}, 400

    # Entries feed their batch totals, so remember the batches before deleting.
    batch_ids = []
    if model is CommissionEntry:
        batch_ids = [e.batch_id for e in CommissionEntry.query.filter(CommissionEntry.id.in_(ids)).all()]

    result = bulk_delete(model, ids)

    if batch_ids and result["deleted"]:
        from backoffice.services.commissions import recompute_totals_for
        recompute_totals_for(batch_ids)

    current_app.logger.info(
        f"Bulk delete {resource}: {len(result['deleted'])} deleted, {len(result['failed'])} failed"
    )
    return {"success": True, **result}
