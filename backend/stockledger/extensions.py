# Overview: Shared SQLAlchemy session and Alembic migration handles for the ledger app.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()
