"""
Pitchboard
SQLAlchemy handle shared by the SQL primary store models.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
