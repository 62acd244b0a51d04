"""
Project Planner
SQLAlchemy extension instance shared by all models.

Models register themselves on import; ``create_app`` imports every model
module so Alembic autogenerate and ``db.create_all()`` see the full schema.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
