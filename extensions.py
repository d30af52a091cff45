"""Shared Flask extensions used by the SQL store and the feature packages."""

from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy instance initialized in app.py so stores/services can import `db`.
db = SQLAlchemy()
