"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi db migrate -m "description"
"""

from dtplanner import create_app

app = create_app()
