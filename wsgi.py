"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi seed-directory
    flask --app wsgi db upgrade
"""

from app import create_app

app = create_app()
