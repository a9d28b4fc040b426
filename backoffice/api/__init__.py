# backoffice/api/__init__.py
# HTTP blueprints, all mounted under /api by create_app().
