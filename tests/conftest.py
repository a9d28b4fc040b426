# tests/conftest.py
import itertools
import uuid
from datetime import date, datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine

from backoffice import create_app, db
from backoffice.config import TestingConfig
from backoffice.models import Insurer, Product, Client, Policy, CommissionBatch


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, _connection_record):
    # SQLite ignores foreign keys unless asked; Postgres always enforces them.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Factory of Authorization headers carrying a signed Supabase-style JWT."""
    def _make(role='acceso_total', sub=None, email=None, expires_in=3600):
        now = datetime.now(timezone.utc)
        payload = {
            'sub': sub or str(uuid.uuid5(uuid.NAMESPACE_URL, role)),
            'email': email or f'{role}@gip.test',
            'aud': 'authenticated',
            'iat': now,
            'exp': now + timedelta(seconds=expires_in),
            'app_metadata': {'role': role},
        }
        token = jwt.encode(payload, app.config['SUPABASE_JWT_SECRET'], algorithm='HS256')
        return {'Authorization': f'Bearer {token}'}
    return _make


@pytest.fixture
def make_policy(app):
    """Creates insurer, product, client and policy; returns the policy."""
    counter = itertools.count(1)

    def _make(email='cliente@gip.test', premium=1200.0, payment_frequency='anual',
              start_date=date(2023, 6, 30), end_date=date(2024, 6, 30),
              premium_payment_date=None, status='vigente'):
        n = next(counter)
        insurer = Insurer(name=f'Seguros Horizonte {n}')
        db.session.add(insurer)
        db.session.flush()

        product = Product(name=f'Salud Integral {n}', insurer_id=insurer.id, category='salud')
        holder = Client(first_name='Ana', last_name=f'Pérez {n}', email=email, identification=f'V-{n:08d}')
        db.session.add_all([product, holder])
        db.session.flush()

        policy = Policy(
            client_id=holder.id,
            insurer_id=insurer.id,
            product_id=product.id,
            policy_number=f'POL-{n:04d}',
            premium=premium,
            payment_frequency=payment_frequency,
            start_date=start_date,
            end_date=end_date,
            premium_payment_date=premium_payment_date,
            status=status,
        )
        db.session.add(policy)
        db.session.commit()
        return policy

    return _make


@pytest.fixture
def make_batch(app):
    def _make(currency='USD', status='pendiente'):
        batch = CommissionBatch(batch_date=date(2024, 3, 1), currency=currency, status=status)
        db.session.add(batch)
        db.session.commit()
        return batch
    return _make
