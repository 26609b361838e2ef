"""Flask extension singletons shared by the app factory, models, and routes."""
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()

# Bearer tokens only; nothing is ever stored in the session.
login_manager = LoginManager()
login_manager.session_protection = None
