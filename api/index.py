"""
Vercel Serverless Entry Point

Vercel calls this file for every request to /api/* and /auth/*; the Flask
app routes them through the blueprints in backoffice/api/.
"""

from backoffice import create_app

# The name 'app' is detected automatically by @vercel/python
app = create_app()
