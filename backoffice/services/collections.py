# backoffice/services/collections.py
# Premium collections (cobranzas): listing, stats and the payment lifecycle.

from datetime import date, datetime
from flask import current_app
from backoffice import db
from backoffice.models import Collection, CollectionHistory, Policy
from backoffice.services.audit import record_audit
from backoffice.services.errors import handle_service_error
from backoffice.services.premiums import calculate_installment, days_overdue, next_payment_date

COLLECTION_STATUSES = ['pendiente', 'contacto_asesor', 'cobrada']


def _serialize(collection, today):
    data = collection.to_dict()
    data['days_overdue'] = days_overdue(collection.due_date, collection.status, today)
    return data


def get_collections(status=None, search=None, due_from=None, due_to=None,
                    days_overdue_min=None, days_overdue_max=None, today=None):
    """
    Collections ordered by due date. Status and due-date range are filtered
    in SQL; the free-text search (client name, policy number) and the
    days-overdue window are applied on the loaded rows.
    """
    today = today or date.today()
    try:
        query = Collection.query.order_by(Collection.due_date.asc())
        if status and status != 'all':
            query = query.filter(Collection.status == status)
        if due_from:
            query = query.filter(Collection.due_date >= due_from)
        if due_to:
            query = query.filter(Collection.due_date <= due_to)

        rows = []
        needle = (search or '').strip().lower()
        for collection in query.all():
            if needle:
                client_name = collection.client.full_name.lower() if collection.client else ''
                policy_number = (collection.policy.policy_number or '').lower() if collection.policy else ''
                if needle not in client_name and needle not in policy_number:
                    continue

            overdue = days_overdue(collection.due_date, collection.status, today)
            if days_overdue_min is not None and overdue < days_overdue_min:
                continue
            if days_overdue_max is not None and overdue > days_overdue_max:
                continue
            rows.append(_serialize(collection, today))

        return {"success": True, "data": rows}
    except Exception as e:
        return handle_service_error(e, "Error fetching collections")


def get_collection_stats(today=None):
    """Aggregates over every collection not yet 'cobrada'."""
    today = today or date.today()
    try:
        stats = {
            "totalPending": 0,
            "totalAmount": 0.0,
            "overdue": 0,
            "overdueAmount": 0.0,
            "upcoming": 0,
            "upcomingAmount": 0.0,
            "contactAdvisor": 0,
        }
        for collection in Collection.query.filter(Collection.status != 'cobrada').all():
            amount = collection.amount or 0.0
            stats["totalPending"] += 1
            stats["totalAmount"] += amount
            if collection.status == 'contacto_asesor':
                stats["contactAdvisor"] += 1
            if collection.due_date < today:
                stats["overdue"] += 1
                stats["overdueAmount"] += amount
            else:
                stats["upcoming"] += 1
                stats["upcomingAmount"] += amount

        for key in ("totalAmount", "overdueAmount", "upcomingAmount"):
            stats[key] = round(stats[key], 2)
        return {"success": True, "data": stats}
    except Exception as e:
        return handle_service_error(e, "Error computing collection stats")


def get_collection_history(collection_id):
    collection = db.session.get(Collection, collection_id)
    if collection is None:
        return {"success": False, "error": "Cobranza no encontrada."}, 404
    history = sorted(collection.history, key=lambda h: h.created_at or datetime.min, reverse=True)
    return {"success": True, "data": [h.to_dict() for h in history]}


def _add_history(collection, new_status, notes, user_id):
    db.session.add(CollectionHistory(
        collection_id=collection.id,
        previous_status=collection.status,
        new_status=new_status,
        notes=notes,
        changed_by=user_id,
    ))


def mark_as_paid(collection_id, user_id):
    """
    Marks a collection 'cobrada', advances the policy's next payment date
    and opens the following 'pendiente' collection, all in one commit.
    """
    collection = db.session.get(Collection, collection_id)
    if collection is None:
        return {"success": False, "error": "Cobranza no encontrada."}, 404
    if collection.status == 'cobrada':
        return {"success": False, "error": "La cobranza ya fue registrada como cobrada."}, 409

    try:
        _add_history(collection, 'cobrada', 'Marcado como cobrada', user_id)
        collection.status = 'cobrada'
        collection.paid_at = datetime.utcnow()
        collection.paid_by = user_id

        next_due = next_payment_date(collection.due_date, collection.payment_frequency)
        policy = db.session.get(Policy, collection.policy_id)
        if policy is not None:
            policy.premium_payment_date = next_due

        following = Collection(
            policy_id=collection.policy_id,
            client_id=collection.client_id,
            due_date=next_due,
            amount=collection.amount,
            payment_frequency=collection.payment_frequency,
            status='pendiente',
        )
        db.session.add(following)
        record_audit('cobranzas', 'payment_registered', 'collections', collection_id, user_id,
                     {'amount': collection.amount, 'next_due_date': next_due.isoformat()})
        db.session.commit()

        current_app.logger.info(f"Collection {collection_id} paid; next due {next_due.isoformat()}")
        return {"success": True, "data": collection.to_dict(), "next_collection": following.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error marking collection {collection_id} as paid")


def mark_advisor_contact(collection_id, promised_date, notes, user_id):
    collection = db.session.get(Collection, collection_id)
    if collection is None:
        return {"success": False, "error": "Cobranza no encontrada."}, 404
    if collection.status == 'cobrada':
        return {"success": False, "error": "La cobranza ya fue cobrada."}, 409
    if promised_date is None:
        return {"success": False, "error": "La fecha prometida es obligatoria."}, 400

    try:
        _add_history(collection, 'contacto_asesor',
                     f"Fecha prometida: {promised_date.isoformat()}. {notes or ''}".strip(), user_id)
        collection.status = 'contacto_asesor'
        collection.promised_date = promised_date
        collection.advisor_notes = notes
        collection.advisor_contacted_at = datetime.utcnow()
        db.session.commit()
        return {"success": True, "data": collection.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating collection {collection_id}")


def revert_to_pending(collection_id, user_id):
    collection = db.session.get(Collection, collection_id)
    if collection is None:
        return {"success": False, "error": "Cobranza no encontrada."}, 404
    if collection.status == 'cobrada':
        return {"success": False, "error": "Una cobranza cobrada no puede revertirse."}, 409

    try:
        _add_history(collection, 'pendiente', 'Revertido a pendiente', user_id)
        collection.status = 'pendiente'
        collection.promised_date = None
        collection.advisor_notes = None
        collection.advisor_contacted_at = None
        db.session.commit()
        return {"success": True, "data": collection.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error reverting collection {collection_id}")


def sync_collections():
    """
    Opens a 'pendiente' collection for every active policy with a payment
    date, unless an open collection already exists for (policy, due date).
    """
    try:
        policies = Policy.query.filter(
            Policy.status == 'vigente',
            Policy.premium_payment_date.isnot(None),
        ).all()
        if not policies:
            return {"success": True, "created": 0, "message": "No hay pólizas vigentes con fecha de pago."}

        existing = {
            (c.policy_id, c.due_date)
            for c in Collection.query.filter(Collection.status != 'cobrada').all()
        }

        created = 0
        for policy in policies:
            if (policy.id, policy.premium_payment_date) in existing:
                continue
            frequency = policy.payment_frequency or 'mensual'
            db.session.add(Collection(
                policy_id=policy.id,
                client_id=policy.client_id,
                due_date=policy.premium_payment_date,
                amount=round(calculate_installment(policy.premium, frequency) or 0.0, 2),
                payment_frequency=frequency,
                status='pendiente',
            ))
            created += 1

        if created == 0:
            return {"success": True, "created": 0, "message": "Todas las cobranzas están al día."}

        db.session.commit()
        current_app.logger.info(f"Collections sync created {created} records")
        return {"success": True, "created": created, "message": f"Se crearon {created} cobranzas."}
    except Exception as e:
        return handle_service_error(e, "Error syncing collections")
