# models.py

import uuid
from datetime import datetime
from sqlalchemy.ext.hybrid import hybrid_property
from . import db

# This file defines the tables of the back-office using Flask-SQLAlchemy.
# Primary keys are UUID strings, matching the hosted Postgres schema.


def _uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# --- 1. USERS & ADVISORS ---

class User(db.Model):
    """
    Back-office user synchronized from Supabase Auth (JIT provisioning).
    The id is the Supabase UUID ('sub' claim).
    """
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True)
    username = db.Column(db.String(64), index=True, unique=True, nullable=False)
    email = db.Column(db.String(120), index=True, unique=True, nullable=False)
    # 'acceso_total', 'revision_edicion_1', 'revision_edicion_2', 'revision'
    role = db.Column(db.String(32), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
        }

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


class Advisor(db.Model):
    __tablename__ = 'advisors'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    full_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(32))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
        }


class Insurer(db.Model):
    __tablename__ = 'insurers'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(128), nullable=False)
    short_name = db.Column(db.String(32))

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'short_name': self.short_name}


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'))
    name = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64))

    def to_dict(self):
        return {'id': self.id, 'insurer_id': self.insurer_id, 'name': self.name, 'category': self.category}


# --- 2. CLIENTS & POLICIES ---

class Client(db.Model):
    __tablename__ = 'clients'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    identification = db.Column(db.String(32), unique=True)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(32))
    mobile = db.Column(db.String(32))
    birth_date = db.Column(db.Date)
    address = db.Column(db.String(255))
    advisor_id = db.Column(db.String(36), db.ForeignKey('advisors.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    advisor = db.relationship('Advisor', backref='clients', lazy=True)
    policies = db.relationship('Policy', backref='client', lazy=True, cascade="all, delete-orphan")

    @hybrid_property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self, include_policies=False):
        data = {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'identification': self.identification,
            'email': self.email,
            'phone': self.phone,
            'mobile': self.mobile,
            'birth_date': _iso(self.birth_date),
            'address': self.address,
            'advisor_id': self.advisor_id,
            'advisor_name': self.advisor.full_name if self.advisor else None,
            'created_at': _iso(self.created_at),
        }
        if include_policies:
            data['policies'] = [p.to_dict() for p in self.policies]
        return data


class Policy(db.Model):
    __tablename__ = 'policies'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'))
    product_id = db.Column(db.String(36), db.ForeignKey('products.id'))
    policy_number = db.Column(db.String(64))
    premium = db.Column(db.Float)
    payment_frequency = db.Column(db.String(32), default='anual')
    premium_payment_date = db.Column(db.Date)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    # 'vigente', 'vencida', 'cancelada'
    status = db.Column(db.String(32), default='vigente')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    insurer = db.relationship('Insurer', lazy=True)
    product = db.relationship('Product', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'insurer_id': self.insurer_id,
            'product_id': self.product_id,
            'policy_number': self.policy_number,
            'premium': self.premium,
            'payment_frequency': self.payment_frequency,
            'premium_payment_date': _iso(self.premium_payment_date),
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'status': self.status,
            'insurer': self.insurer.to_dict() if self.insurer else None,
            'product': self.product.to_dict() if self.product else None,
        }


class Attachment(db.Model):
    """Metadata for a file kept in Supabase Storage. Only the path is stored."""
    __tablename__ = 'attachments'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    policy_id = db.Column(db.String(36), db.ForeignKey('policies.id'))
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    file_size = db.Column(db.Integer)
    mime_type = db.Column(db.String(128))
    uploaded_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'policy_id': self.policy_id,
            'file_name': self.file_name,
            'file_path': self.file_path,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
            'uploaded_by': self.uploaded_by,
            'created_at': _iso(self.created_at),
        }


# --- 3. COLLECTIONS ---

class Collection(db.Model):
    __tablename__ = 'collections'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    policy_id = db.Column(db.String(36), db.ForeignKey('policies.id'), nullable=False)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    payment_frequency = db.Column(db.String(32), default='mensual')
    # 'pendiente', 'contacto_asesor', 'cobrada'
    status = db.Column(db.String(32), nullable=False, default='pendiente')
    promised_date = db.Column(db.Date)
    advisor_notes = db.Column(db.Text)
    advisor_contacted_at = db.Column(db.DateTime)
    paid_at = db.Column(db.DateTime)
    paid_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    policy = db.relationship('Policy', lazy=True)
    client = db.relationship('Client', lazy=True)
    history = db.relationship('CollectionHistory', backref='collection', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'policy_id': self.policy_id,
            'client_id': self.client_id,
            'due_date': _iso(self.due_date),
            'amount': self.amount,
            'payment_frequency': self.payment_frequency,
            'status': self.status,
            'promised_date': _iso(self.promised_date),
            'advisor_notes': self.advisor_notes,
            'advisor_contacted_at': _iso(self.advisor_contacted_at),
            'paid_at': _iso(self.paid_at),
            'paid_by': self.paid_by,
            'client_name': self.client.full_name if self.client else None,
            'policy_number': self.policy.policy_number if self.policy else None,
        }


class CollectionHistory(db.Model):
    __tablename__ = 'collection_history'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    collection_id = db.Column(db.String(36), db.ForeignKey('collections.id'), nullable=False)
    previous_status = db.Column(db.String(32))
    new_status = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text)
    changed_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'collection_id': self.collection_id,
            'previous_status': self.previous_status,
            'new_status': self.new_status,
            'notes': self.notes,
            'changed_by': self.changed_by,
            'created_at': _iso(self.created_at),
        }


# --- 4. RENEWALS ---

class RenewalConfig(db.Model):
    """
    Tracks a policy's upcoming premium renewal and its notification lifecycle.
    One row per (policy, renewal cycle).
    """
    __tablename__ = 'renewal_configs'
    __table_args__ = (db.UniqueConstraint('policy_id', 'renewal_date', name='uq_renewal_policy_date'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    policy_id = db.Column(db.String(36), db.ForeignKey('policies.id'), nullable=False)
    renewal_date = db.Column(db.Date, nullable=False)
    current_amount = db.Column(db.Float, nullable=False, default=0.0)
    new_amount = db.Column(db.Float)
    difference = db.Column(db.Float, nullable=False, default=0.0)
    percentage = db.Column(db.Float, nullable=False, default=0.0)
    # 'pendiente', 'programada', 'enviada', 'error', 'completada'
    status = db.Column(db.String(32), nullable=False, default='pendiente')
    scheduled_send_date = db.Column(db.Date, index=True)
    pdf_generated = db.Column(db.Boolean, nullable=False, default=False)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_sent_at = db.Column(db.DateTime)
    failed_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    policy = db.relationship('Policy', backref=db.backref('renewal_configs', lazy=True, cascade="all, delete-orphan"), lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'policy_id': self.policy_id,
            'renewal_date': _iso(self.renewal_date),
            'current_amount': self.current_amount,
            'new_amount': self.new_amount,
            'difference': self.difference,
            'percentage': self.percentage,
            'status': self.status,
            'scheduled_send_date': _iso(self.scheduled_send_date),
            'pdf_generated': self.pdf_generated,
            'email_sent': self.email_sent,
            'email_sent_at': _iso(self.email_sent_at),
            'failed_at': _iso(self.failed_at),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


# --- 5. COMMISSIONS ---

class CommissionBatch(db.Model):
    __tablename__ = 'commission_batches'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'))
    batch_date = db.Column(db.Date, nullable=False)
    # 'pendiente', 'verificado', 'asignado'
    status = db.Column(db.String(32), nullable=False, default='pendiente')
    total_premium = db.Column(db.Float, nullable=False, default=0.0)
    total_commission = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(8), nullable=False, default='USD')
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    insurer = db.relationship('Insurer', lazy=True)
    entries = db.relationship('CommissionEntry', backref='batch', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'insurer_id': self.insurer_id,
            'insurer_name': self.insurer.name if self.insurer else None,
            'batch_date': _iso(self.batch_date),
            'status': self.status,
            'total_premium': self.total_premium,
            'total_commission': self.total_commission,
            'currency': self.currency,
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'entries_count': len(self.entries),
        }


class CommissionEntry(db.Model):
    __tablename__ = 'commission_entries'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    batch_id = db.Column(db.String(36), db.ForeignKey('commission_batches.id'), nullable=False)
    policy_number = db.Column(db.String(64))
    client_name = db.Column(db.String(128), nullable=False)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'))
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'))
    plan_type = db.Column(db.String(64))
    premium = db.Column(db.Float, nullable=False, default=0.0)
    commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    commission_amount = db.Column(db.Float, nullable=False, default=0.0)
    has_discrepancy = db.Column(db.Boolean, nullable=False, default=False)
    discrepancy_note = db.Column(db.String(255))
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    # Set when an operator accepts a flagged amount by hand.
    reconciliation_note = db.Column(db.String(255))
    reconciled_by = db.Column(db.String(36))
    reconciled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    assignments = db.relationship('CommissionAssignment', backref='entry', lazy=True, cascade="all, delete-orphan")

    @hybrid_property
    def expected_amount(self):
        return (self.premium or 0.0) * (self.commission_rate or 0.0) / 100

    def to_dict(self):
        return {
            'id': self.id,
            'batch_id': self.batch_id,
            'policy_number': self.policy_number,
            'client_name': self.client_name,
            'client_id': self.client_id,
            'insurer_id': self.insurer_id,
            'plan_type': self.plan_type,
            'premium': self.premium,
            'commission_rate': self.commission_rate,
            'commission_amount': self.commission_amount,
            'expected_amount': round(self.expected_amount, 2),
            'has_discrepancy': self.has_discrepancy,
            'discrepancy_note': self.discrepancy_note,
            'is_verified': self.is_verified,
            'reconciliation_note': self.reconciliation_note,
            'reconciled_by': self.reconciled_by,
            'reconciled_at': _iso(self.reconciled_at),
        }


class CommissionRule(db.Model):
    __tablename__ = 'commission_rules'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    advisor_id = db.Column(db.String(36), db.ForeignKey('advisors.id'), nullable=False)
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'), nullable=False)
    plan_type = db.Column(db.String(64), nullable=False)
    commission_percentage = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    advisor = db.relationship('Advisor', lazy=True)
    insurer = db.relationship('Insurer', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'advisor_id': self.advisor_id,
            'advisor_name': self.advisor.full_name if self.advisor else None,
            'insurer_id': self.insurer_id,
            'insurer_name': self.insurer.name if self.insurer else None,
            'plan_type': self.plan_type,
            'commission_percentage': self.commission_percentage,
        }


class CommissionAssignment(db.Model):
    __tablename__ = 'commission_assignments'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    entry_id = db.Column(db.String(36), db.ForeignKey('commission_entries.id'), nullable=False)
    advisor_id = db.Column(db.String(36), db.ForeignKey('advisors.id'), nullable=False)
    percentage = db.Column(db.Float, nullable=False)
    amount = db.Column(db.Float, nullable=False)

    advisor = db.relationship('Advisor', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'entry_id': self.entry_id,
            'advisor_id': self.advisor_id,
            'advisor_name': self.advisor.full_name if self.advisor else None,
            'percentage': self.percentage,
            'amount': self.amount,
        }


# --- 6. SALES PIPELINE ---

class SalesOpportunity(db.Model):
    __tablename__ = 'sales_opportunities'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'))
    prospect_name = db.Column(db.String(128), nullable=False)
    prospect_email = db.Column(db.String(120))
    prospect_phone = db.Column(db.String(32))
    prospect_company = db.Column(db.String(128))
    stage = db.Column(db.String(32), nullable=False, default='lead_identificado')
    notes = db.Column(db.Text)
    expected_close_date = db.Column(db.Date)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = db.relationship('SalesOpportunityProduct', backref='opportunity', lazy=True, cascade="all, delete-orphan")
    sales_notes = db.relationship('SalesNote', backref='opportunity', lazy=True, cascade="all, delete-orphan")
    investments = db.relationship('SalesInvestment', backref='opportunity', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'prospect_name': self.prospect_name,
            'prospect_email': self.prospect_email,
            'prospect_phone': self.prospect_phone,
            'prospect_company': self.prospect_company,
            'stage': self.stage,
            'notes': self.notes,
            'expected_close_date': _iso(self.expected_close_date),
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'products': [p.to_dict() for p in self.products],
        }


class SalesOpportunityProduct(db.Model):
    __tablename__ = 'sales_opportunity_products'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    opportunity_id = db.Column(db.String(36), db.ForeignKey('sales_opportunities.id'), nullable=False)
    insurer_id = db.Column(db.String(36), db.ForeignKey('insurers.id'))
    product_id = db.Column(db.String(36), db.ForeignKey('products.id'))
    annual_premium = db.Column(db.Float, nullable=False, default=0.0)
    commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    payment_frequency = db.Column(db.String(32), nullable=False, default='anual')
    notes = db.Column(db.Text)
    is_selected = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            'id': self.id,
            'opportunity_id': self.opportunity_id,
            'insurer_id': self.insurer_id,
            'product_id': self.product_id,
            'annual_premium': self.annual_premium,
            'commission_rate': self.commission_rate,
            'payment_frequency': self.payment_frequency,
            'notes': self.notes,
            'is_selected': self.is_selected,
        }


class SalesNote(db.Model):
    __tablename__ = 'sales_notes'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    opportunity_id = db.Column(db.String(36), db.ForeignKey('sales_opportunities.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'opportunity_id': self.opportunity_id,
            'content': self.content,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
        }


class SalesInvestment(db.Model):
    """Money spent chasing an opportunity (travel, meals, gifts)."""
    __tablename__ = 'sales_investments'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    opportunity_id = db.Column(db.String(36), db.ForeignKey('sales_opportunities.id'), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    investment_date = db.Column(db.Date, nullable=False)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'opportunity_id': self.opportunity_id,
            'description': self.description,
            'amount': self.amount,
            'investment_date': _iso(self.investment_date),
            'created_by': self.created_by,
        }


# --- 7. PARTNERSHIPS ---

class Partner(db.Model):
    __tablename__ = 'partners'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(128), nullable=False)
    contact_name = db.Column(db.String(128))
    phone = db.Column(db.String(32))
    email = db.Column(db.String(120))
    rif = db.Column(db.String(32))
    address = db.Column(db.String(255))
    category = db.Column(db.String(64))
    notes = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    services = db.relationship('PartnerService', backref='partner', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'contact_name': self.contact_name,
            'phone': self.phone,
            'email': self.email,
            'rif': self.rif,
            'address': self.address,
            'category': self.category,
            'notes': self.notes,
            'is_active': self.is_active,
            'services': [s.to_dict() for s in self.services],
        }


class PartnerService(db.Model):
    __tablename__ = 'partner_services'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    partner_id = db.Column(db.String(36), db.ForeignKey('partners.id'), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    # 'porcentaje' or 'monto_fijo'
    discount_type = db.Column(db.String(16), nullable=False, default='porcentaje')
    discount_value = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            'id': self.id,
            'partner_id': self.partner_id,
            'name': self.name,
            'description': self.description,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'is_active': self.is_active,
        }


class DiscountCode(db.Model):
    __tablename__ = 'discount_codes'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    service_id = db.Column(db.String(36), db.ForeignKey('partner_services.id'), nullable=False)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'))
    code = db.Column(db.String(16), unique=True, nullable=False)
    max_uses = db.Column(db.Integer, nullable=False, default=1)
    current_uses = db.Column(db.Integer, nullable=False, default=0)
    # 'generado', 'enviado', 'utilizado', 'expirado'
    status = db.Column(db.String(16), nullable=False, default='generado')
    expires_at = db.Column(db.DateTime)
    sent_at = db.Column(db.DateTime)
    used_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    service = db.relationship('PartnerService', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'service_id': self.service_id,
            'service_name': self.service.name if self.service else None,
            'client_id': self.client_id,
            'code': self.code,
            'max_uses': self.max_uses,
            'current_uses': self.current_uses,
            'status': self.status,
            'expires_at': _iso(self.expires_at),
            'sent_at': _iso(self.sent_at),
            'used_at': _iso(self.used_at),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


# --- 8. BIRTHDAYS ---

class BirthdaySend(db.Model):
    __tablename__ = 'birthday_sends'
    __table_args__ = (db.UniqueConstraint('client_id', 'send_year', name='uq_birthday_client_year'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    send_year = db.Column(db.Integer, nullable=False)
    channels = db.Column(db.JSON, nullable=False, default=list)
    status_whatsapp = db.Column(db.String(16))
    status_email = db.Column(db.String(16))
    sent_at = db.Column(db.DateTime, default=datetime.utcnow)
    sent_by = db.Column(db.String(36))

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'send_year': self.send_year,
            'channels': self.channels or [],
            'status_whatsapp': self.status_whatsapp,
            'status_email': self.status_email,
            'sent_at': _iso(self.sent_at),
            'sent_by': self.sent_by,
        }


# --- 9. SETTINGS & AUDIT ---

class BrokerSettings(db.Model):
    __tablename__ = 'broker_settings'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(128), nullable=False)
    identification = db.Column(db.String(32))
    phone = db.Column(db.String(32))
    email = db.Column(db.String(120))
    address = db.Column(db.String(255))
    logo_url = db.Column(db.String(512))
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'identification': self.identification,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'logo_url': self.logo_url,
            'updated_at': _iso(self.updated_at),
        }


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    module = db.Column(db.String(32), nullable=False, index=True)
    action = db.Column(db.String(64), nullable=False)
    record_type = db.Column(db.String(64))
    record_id = db.Column(db.String(36))
    user_id = db.Column(db.String(36))
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'module': self.module,
            'action': self.action,
            'record_type': self.record_type,
            'record_id': self.record_id,
            'user_id': self.user_id,
            'details': self.details,
            'created_at': _iso(self.created_at),
        }


# --- 10. FINANCE LEDGER ---

class ExchangeRate(db.Model):
    """
    Historical record of exchange rates. The latest row per currency is the
    current rate; older rows are kept for audit purposes.
    """
    __tablename__ = 'exchange_rates'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    # 'USD', 'VES', 'EUR', 'USDT'
    currency = db.Column(db.String(8), nullable=False, index=True)
    # 'BCV', 'Binance', 'Kontigo', 'Manual'
    source = db.Column(db.String(16), nullable=False, default='BCV')
    rate = db.Column(db.Float, nullable=False)
    recorded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    recorded_by = db.Column(db.String(36))
    is_manual = db.Column(db.Boolean, nullable=False, default=False)
    manual_reason = db.Column(db.String(255))

    def to_dict(self):
        return {
            'id': self.id,
            'currency': self.currency,
            'source': self.source,
            'rate': self.rate,
            'recorded_at': _iso(self.recorded_at),
            'recorded_by': self.recorded_by,
            'is_manual': self.is_manual,
            'manual_reason': self.manual_reason,
        }


class FinanceIncome(db.Model):
    __tablename__ = 'finance_income'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    income_date = db.Column(db.Date, nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_usd = db.Column(db.Float, nullable=False, default=0.0)
    amount_ves = db.Column(db.Float, nullable=False, default=0.0)
    exchange_rate = db.Column(db.Float)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'income_date': _iso(self.income_date),
            'month': self.month,
            'description': self.description,
            'amount_usd': self.amount_usd,
            'amount_ves': self.amount_ves,
            'exchange_rate': self.exchange_rate,
            'notes': self.notes,
        }


class FinanceExpense(db.Model):
    __tablename__ = 'finance_expenses'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    expense_date = db.Column(db.Date, nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_usd = db.Column(db.Float, nullable=False, default=0.0)
    amount_ves = db.Column(db.Float, nullable=False, default=0.0)
    exchange_rate = db.Column(db.Float)
    beneficiary = db.Column(db.String(128))
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'expense_date': _iso(self.expense_date),
            'month': self.month,
            'description': self.description,
            'amount_usd': self.amount_usd,
            'amount_ves': self.amount_ves,
            'exchange_rate': self.exchange_rate,
            'beneficiary': self.beneficiary,
            'is_paid': self.is_paid,
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
        }


class FinanceDebt(db.Model):
    """Money the brokerage owes a third party."""
    __tablename__ = 'finance_debts'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    debt_date = db.Column(db.Date, nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)
    beneficiary = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount_usd = db.Column(db.Float, nullable=False, default=0.0)
    amount_ves = db.Column(db.Float, nullable=False, default=0.0)
    exchange_rate = db.Column(db.Float)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'debt_date': _iso(self.debt_date),
            'month': self.month,
            'beneficiary': self.beneficiary,
            'description': self.description,
            'amount_usd': self.amount_usd,
            'amount_ves': self.amount_ves,
            'exchange_rate': self.exchange_rate,
            'is_paid': self.is_paid,
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
        }


class FinanceLoan(db.Model):
    """Money the brokerage lent out and expects back."""
    __tablename__ = 'finance_loans'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    loan_date = db.Column(db.Date, nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)
    beneficiary = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount_usd = db.Column(db.Float, nullable=False, default=0.0)
    amount_ves = db.Column(db.Float, nullable=False, default=0.0)
    exchange_rate = db.Column(db.Float)
    is_collected = db.Column(db.Boolean, nullable=False, default=False)
    collected_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'loan_date': _iso(self.loan_date),
            'month': self.month,
            'beneficiary': self.beneficiary,
            'description': self.description,
            'amount_usd': self.amount_usd,
            'amount_ves': self.amount_ves,
            'exchange_rate': self.exchange_rate,
            'is_collected': self.is_collected,
            'collected_at': _iso(self.collected_at),
            'notes': self.notes,
        }


class PayrollEmployee(db.Model):
    __tablename__ = 'payroll_employees'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    full_name = db.Column(db.String(128), nullable=False)
    base_salary_usd = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'base_salary_usd': self.base_salary_usd,
            'is_active': self.is_active,
            'notes': self.notes,
        }


# --- 11. POLICY CONSUMPTIONS ---

class UsageType(db.Model):
    """Catalog of coverage usages (consulta, emergencia, farmacia...)."""
    __tablename__ = 'usage_types'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(64), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'is_active': self.is_active}


class PolicyConsumption(db.Model):
    """
    One use of a policy's coverage by the holder or a beneficiary.
    Rows are soft-deleted so the per-policy history stays auditable.
    """
    __tablename__ = 'policy_consumptions'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    policy_id = db.Column(db.String(36), db.ForeignKey('policies.id'), nullable=False, index=True)
    beneficiary_name = db.Column(db.String(128))
    usage_type_id = db.Column(db.String(36), db.ForeignKey('usage_types.id'))
    usage_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255))
    amount_bs = db.Column(db.Float, nullable=False, default=0.0)
    amount_usd = db.Column(db.Float, nullable=False, default=0.0)
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime)
    deleted_by = db.Column(db.String(36))

    policy = db.relationship('Policy', backref=db.backref('consumptions', lazy=True, cascade="all, delete-orphan"), lazy=True)
    usage_type = db.relationship('UsageType')

    def to_dict(self):
        return {
            'id': self.id,
            'policy_id': self.policy_id,
            'beneficiary_name': self.beneficiary_name,
            'usage_type_id': self.usage_type_id,
            'usage_type_name': self.usage_type.name if self.usage_type else None,
            'usage_date': _iso(self.usage_date),
            'description': self.description,
            'amount_bs': self.amount_bs,
            'amount_usd': self.amount_usd,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
        }
