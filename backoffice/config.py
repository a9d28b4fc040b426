# config.py

import os
from dotenv import load_dotenv

# Get the base directory of the application
basedir = os.path.abspath(os.path.dirname(__file__))

# Loads the .env file from the repository root.
load_dotenv(os.path.join(basedir, '..', '.env'))


class Config:
    """
    Contains all the configuration variables for the application,
    including database, Supabase, email and domain settings.
    """
    # --- Database Settings ---
    # Reads the database URL from the .env file.
    # Falls back to a local SQLite file for development.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'backoffice.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Secret Key ---
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # --- Supabase Settings ---
    # The JWT secret verifies access tokens issued by Supabase Auth.
    # The service role key is only used for admin operations (roles, storage).
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_JWT_SECRET = os.environ.get('SUPABASE_JWT_SECRET')
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')
    ATTACHMENTS_BUCKET = os.environ.get('ATTACHMENTS_BUCKET') or 'attachments'
    SIGNED_URL_TTL_SECONDS = int(os.environ.get('SIGNED_URL_TTL_SECONDS') or 3600)

    # --- Email Settings (Resend) ---
    RESEND_API_URL = os.environ.get('RESEND_API_URL') or 'https://api.resend.com/emails'
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or 'GIP Asesores <onboarding@resend.dev>'
    MAIL_TIMEOUT_SECONDS = int(os.environ.get('MAIL_TIMEOUT_SECONDS') or 10)

    # 'log' only writes the composed renewal notice to the log.
    # 'resend' delivers it through the Resend API.
    RENEWAL_EMAIL_DELIVERY = os.environ.get('RENEWAL_EMAIL_DELIVERY') or 'log'

    # --- CORS ---
    CORS_ORIGINS = [
        origin.strip()
        for origin in (os.environ.get('CORS_ORIGINS') or 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]

    # --- Domain constants ---
    RENEWAL_SEND_DAYS_BEFORE = 30
    RENEWAL_LOOKAHEAD_DAYS = 30
    COMMISSION_DISCREPANCY_TOLERANCE = 0.01
    BROKER_DEFAULT_NAME = 'GIP Asesores Integrales'
    MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

    # --- ROLE GATING CONFIGURATION ---
    # Modules not listed here are visible to every role.
    # The 'revision' role is read-only everywhere.
    MODULE_ROLES = {
        'finances': ['acceso_total', 'revision_edicion_1'],
        'consumptions': ['acceso_total', 'revision_edicion_1'],
        'commissions': ['acceso_total', 'revision_edicion_1'],
        'audit': ['acceso_total', 'revision_edicion_1'],
        'settings': ['acceso_total'],
        'renewal_dispatch': ['acceso_total', 'revision_edicion_1'],
    }
    READ_ONLY_ROLES = ['revision']

    @classmethod
    def validate_email_config(cls):
        """Raises ValueError when the Resend integration is not configured."""
        if not cls.RESEND_API_KEY:
            raise ValueError("RESEND_API_KEY not configured")
        if not cls.MAIL_DEFAULT_SENDER:
            raise ValueError("MAIL_DEFAULT_SENDER not configured")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret-key'
    SUPABASE_JWT_SECRET = 'test-jwt-secret-with-enough-length-for-hs256'
    SUPABASE_URL = None
    SUPABASE_SERVICE_ROLE_KEY = None
    RESEND_API_KEY = 're_test_key'
    RENEWAL_EMAIL_DELIVERY = 'log'
