"""Shared Flask extensions used by the quest, Steam and auth modules."""

from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

# Extension instances initialized in app.create_app so blueprints/services can import them.
db = SQLAlchemy()
cors = CORS()
