# backoffice/services/renewals.py
"""
Renewal workflow: premium variance calculation, renewal configuration
persistence, the renewals listing/stats and the daily dispatch job that
notifies clients of their new premium.
"""

from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta
from flask import current_app
from sqlalchemy import or_
from backoffice import db
from backoffice.models import RenewalConfig, Policy, Client
from backoffice.services.audit import record_audit
from backoffice.services.email_service import deliver_renewal_notice
from backoffice.services.errors import handle_service_error
from backoffice.services.settings import get_broker_settings_row

RENEWAL_STATUSES = ['pendiente', 'programada', 'enviada', 'error', 'completada']


class RenewalValidationError(ValueError):
    pass


@dataclass
class RenewalCalculation:
    current_amount: float
    new_amount: float
    difference: float
    percentage: float
    renewal_date: date
    scheduled_send_date: date

    def to_dict(self):
        data = asdict(self)
        data['renewal_date'] = self.renewal_date.isoformat()
        data['scheduled_send_date'] = self.scheduled_send_date.isoformat()
        data['percentage_text'] = format_percentage(self.percentage)
        return data


def format_percentage(percentage):
    if percentage > 0:
        return f"+{percentage:.2f}%"
    return f"{percentage:.2f}%"


def calculate_renewal(current_amount, new_amount, renewal_date, send_days_before=30):
    """
    Signed difference and variance between the current and the proposed
    annual premium, plus the date the notice goes out.

    The variance is 0 when the current premium is 0. Negative premiums are
    rejected with RenewalValidationError.
    """
    try:
        current_amount = float(current_amount)
        new_amount = float(new_amount)
    except (TypeError, ValueError):
        raise RenewalValidationError("Las primas deben ser valores numéricos.")

    if current_amount < 0 or new_amount < 0:
        raise RenewalValidationError("Las primas no pueden ser negativas.")
    if renewal_date is None:
        raise RenewalValidationError("La fecha de renovación es obligatoria.")

    difference = new_amount - current_amount
    percentage = (difference / current_amount) * 100 if current_amount > 0 else 0.0

    return RenewalCalculation(
        current_amount=current_amount,
        new_amount=new_amount,
        difference=round(difference, 2),
        percentage=round(percentage, 2),
        renewal_date=renewal_date,
        scheduled_send_date=renewal_date - timedelta(days=send_days_before),
    )


def preview_renewal(current_amount, new_amount, renewal_date):
    try:
        calc = calculate_renewal(
            current_amount, new_amount, renewal_date,
            current_app.config['RENEWAL_SEND_DAYS_BEFORE'],
        )
    except RenewalValidationError as e:
        return {"success": False, "error": str(e)}, 400
    return {"success": True, "data": calc.to_dict()}


def upsert_renewal_config(policy_id, new_amount, renewal_date=None, current_amount=None,
                          notes=None, actor_id=None):
    """
    Saves the proposed premium for a policy's renewal and schedules the notice.
    One row per (policy, renewal date): saving again updates the same row.
    Defaults: renewal date = policy end date, current amount = policy premium.
    """
    policy = db.session.get(Policy, policy_id)
    if policy is None:
        return {"success": False, "error": "Póliza no encontrada."}, 404

    renewal_date = renewal_date or policy.end_date
    if current_amount is None:
        current_amount = policy.premium or 0.0

    try:
        calc = calculate_renewal(
            current_amount, new_amount, renewal_date,
            current_app.config['RENEWAL_SEND_DAYS_BEFORE'],
        )
    except RenewalValidationError as e:
        return {"success": False, "error": str(e)}, 400

    config = RenewalConfig.query.filter_by(policy_id=policy_id, renewal_date=renewal_date).first()
    if config is not None and config.status == 'enviada':
        return {"success": False, "error": "Esta renovación ya fue enviada. Reábrela antes de modificarla."}, 409

    try:
        if config is None:
            config = RenewalConfig(policy_id=policy_id, renewal_date=renewal_date, created_by=actor_id)
            db.session.add(config)

        config.current_amount = calc.current_amount
        config.new_amount = calc.new_amount
        config.difference = calc.difference
        config.percentage = calc.percentage
        config.scheduled_send_date = calc.scheduled_send_date
        config.status = 'programada'
        if notes is not None:
            config.notes = notes

        db.session.commit()
        current_app.logger.info(
            f"Renewal for policy {policy_id} scheduled for {calc.scheduled_send_date} ({format_percentage(calc.percentage)})"
        )
        return {"success": True, "data": config.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error saving renewal config for policy {policy_id}")


def update_renewal_status(renewal_id, status, notes=None, reopen=False, actor_id=None):
    """
    Manual status change. An 'enviada' renewal only moves again when the
    operator reopens it explicitly, which also clears the sent flags so the
    dispatch job can pick it up after rescheduling.
    """
    if status not in RENEWAL_STATUSES:
        return {"success": False, "error": f"Estado inválido: {status}"}, 400

    config = db.session.get(RenewalConfig, renewal_id)
    if config is None:
        return {"success": False, "error": "Renovación no encontrada."}, 404

    previous = config.status
    if previous == 'enviada' and status != 'enviada' and not reopen:
        return {"success": False, "error": "La renovación ya fue enviada. Usa la opción de reabrir para modificarla."}, 409

    try:
        config.status = status
        if notes is not None:
            config.notes = notes
        if previous == 'enviada' and reopen:
            config.email_sent = False
            config.email_sent_at = None
        if status == 'error':
            config.failed_at = datetime.utcnow()

        record_audit('renovaciones', 'status_changed', 'renewal_configs', renewal_id, actor_id,
                     {'from': previous, 'to': status, 'reopen': bool(reopen)})
        db.session.commit()
        return {"success": True, "data": config.to_dict()}
    except Exception as e:
        return handle_service_error(e, f"Error updating renewal {renewal_id}")


# --- LISTING & STATS ---

def _policies_due(today, days_ahead, search=None):
    query = Policy.query.join(Client).filter(
        Policy.status == 'vigente',
        Policy.end_date >= today,
        Policy.end_date <= today + timedelta(days=days_ahead),
    )
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Policy.policy_number.ilike(pattern),
            Client.first_name.ilike(pattern),
            Client.last_name.ilike(pattern),
        ))
    return query.order_by(Policy.end_date.asc()).all()


def _configs_by_policy(policy_ids):
    if not policy_ids:
        return {}
    configs = RenewalConfig.query.filter(RenewalConfig.policy_id.in_(policy_ids)) \
        .order_by(RenewalConfig.renewal_date.asc()).all()
    # Later renewal cycles win.
    return {config.policy_id: config for config in configs}


def get_renewal_policies(days_ahead=30, status='all', search='', today=None):
    """
    Active policies whose end date falls in [today, today + days_ahead],
    each joined with its renewal configuration (or None).
    status: 'all', 'sin_config' or one of RENEWAL_STATUSES.
    """
    today = today or date.today()
    try:
        policies = _policies_due(today, days_ahead, search)
        configs = _configs_by_policy([p.id for p in policies])

        rows = []
        for policy in policies:
            config = configs.get(policy.id)
            if status == 'sin_config' and config is not None:
                continue
            if status not in ('all', 'sin_config') and (config is None or config.status != status):
                continue

            row = policy.to_dict()
            row['client'] = policy.client.to_dict() if policy.client else None
            row['renewal_config'] = config.to_dict() if config else None
            rows.append(row)

        return {"success": True, "data": rows}
    except Exception as e:
        return handle_service_error(e, "Error fetching renewal policies")


def get_renewal_stats(today=None):
    today = today or date.today()
    try:
        policies = _policies_due(today, current_app.config['RENEWAL_LOOKAHEAD_DAYS'])
        configs = _configs_by_policy([p.id for p in policies])

        by_status = {s: 0 for s in RENEWAL_STATUSES}
        for config in configs.values():
            by_status[config.status] = by_status.get(config.status, 0) + 1

        week_limit = today + timedelta(days=7)
        stats = {
            "total30Days": len(policies),
            "thisWeek": sum(1 for p in policies if p.end_date <= week_limit),
            "totalPremium": round(sum(p.premium or 0.0 for p in policies), 2),
            "byStatus": by_status,
            "withoutConfig": sum(1 for p in policies if p.id not in configs),
            "programadas": by_status['programada'],
            "enviadas": by_status['enviada'],
        }
        return {"success": True, "data": stats}
    except Exception as e:
        return handle_service_error(e, "Error computing renewal stats")


# --- DISPATCH JOB ---

def compose_renewal_notice(renewal, policy, client, broker):
    """Returns (subject, body) of the renewal notice sent to the client."""
    policy_number = policy.policy_number or ''
    subject = f"Renovación de su póliza {policy_number} - {client.first_name} {client.last_name}"

    renewal_date = renewal.renewal_date
    new_amount = renewal.new_amount if renewal.new_amount is not None else renewal.current_amount

    signature = [broker.name if broker and broker.name else current_app.config['BROKER_DEFAULT_NAME']]
    if broker and broker.email:
        signature.append(f"Email: {broker.email}")
    if broker and broker.phone:
        signature.append(f"Teléfono: {broker.phone}")

    body = "\n".join([
        f"Estimado/a {client.first_name} {client.last_name},",
        "",
        "Esperamos que se encuentre muy bien.",
        "",
        f"Le enviamos el aviso de renovación de su póliza {policy_number}, "
        f"la cual vence el {renewal_date.day}/{renewal_date.month}/{renewal_date.year}.",
        "",
        "RESUMEN DE RENOVACIÓN:",
        f"• Aseguradora: {policy.insurer.name if policy.insurer else '-'}",
        f"• Producto: {policy.product.name if policy.product else '-'}",
        f"• Prima actual: ${renewal.current_amount:.2f}",
        f"• Prima nuevo período: ${new_amount:.2f}",
        f"• Variación: {format_percentage(renewal.percentage or 0.0)}",
        "",
        "Si tiene alguna consulta o requiere asistencia, estamos a su disposición.",
        "",
        "Atentamente,",
        *signature,
        "",
        "---",
        "Este es un mensaje automático generado por el sistema.",
    ])
    return subject, body


def _mark_error(renewal_id, note):
    """
    Flags one renewal as failed. Never raises: a failure here is logged so
    the dispatch loop can move on to the next record.
    """
    try:
        renewal = db.session.get(RenewalConfig, renewal_id)
        if renewal is None:
            return
        renewal.status = 'error'
        renewal.notes = note
        renewal.failed_at = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"[process-renewals] Could not flag renewal {renewal_id} as error: {e}")


def process_scheduled_renewals(today=None, actor_id=None):
    """
    Sends the notices scheduled for `today` (status 'programada', not yet sent).

    Records are processed one by one; a failure on one record marks it
    'error' and the loop continues. Nothing is retried or re-queued.

    Returns:
        dict: {processed, sent, errors: ["<id>: <reason>", ...]}
    """
    today = today or date.today()
    log = current_app.logger
    log.info(f"[process-renewals] Running for date: {today.isoformat()}")

    renewal_ids = [
        r.id for r in RenewalConfig.query.filter(
            RenewalConfig.scheduled_send_date == today,
            RenewalConfig.status == 'programada',
            RenewalConfig.email_sent.is_(False),
        ).all()
    ]
    log.info(f"[process-renewals] Found {len(renewal_ids)} renewals to process")

    results = {"processed": 0, "sent": 0, "errors": []}
    broker = get_broker_settings_row()

    for renewal_id in renewal_ids:
        results["processed"] += 1
        try:
            renewal = db.session.get(RenewalConfig, renewal_id)
            policy = renewal.policy
            client = policy.client if policy else None

            if client is None or not client.email:
                log.warning(f"[process-renewals] Renewal {renewal_id}: No client email, skipping")
                results["errors"].append(f"{renewal_id}: No email for client")
                _mark_error(renewal_id, 'No se encontró email del cliente')
                continue

            subject, body = compose_renewal_notice(renewal, policy, client, broker)
            deliver_renewal_notice(client.email, subject, body)

            renewal.status = 'enviada'
            renewal.email_sent = True
            renewal.email_sent_at = datetime.utcnow()
            record_audit('renovaciones', 'renewal_sent', 'renewal_configs', renewal_id, actor_id, {
                'policy_id': policy.id,
                'policy_number': policy.policy_number,
                'client_email': client.email,
                'renewal_date': renewal.renewal_date.isoformat(),
            })
            db.session.commit()

            results["sent"] += 1
            log.info(f"[process-renewals] Successfully processed renewal {renewal_id}")

        except Exception as e:
            db.session.rollback()
            log.error(f"[process-renewals] Error processing renewal {renewal_id}: {e}")
            results["errors"].append(f"{renewal_id}: {e}")
            _mark_error(renewal_id, f"Error: {e}")

    log.info(
        f"[process-renewals] Completed. Processed: {results['processed']}, "
        f"Sent: {results['sent']}, Errors: {len(results['errors'])}"
    )
    return results


def run_renewal_dispatch(today=None, actor_id=None):
    """Route wrapper around process_scheduled_renewals()."""
    try:
        results = process_scheduled_renewals(today=today, actor_id=actor_id)
    except Exception as e:
        return handle_service_error(e, "[process-renewals] Fatal error")

    if results["processed"] == 0:
        message = "No renewals to process today"
    else:
        message = f"Processed {results['processed']} renewals, sent {results['sent']}"
    return {"success": True, "message": message, "results": results}
