"""
WSGI / Flask CLI entry point.

Usage:
    flask --app wsgi export-backup backup.json
    flask --app wsgi restore-backup backup.json
    gunicorn wsgi:app
"""

from pitchboard import create_app

app = create_app()
