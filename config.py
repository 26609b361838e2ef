"""Environment-aware configuration for the CRM backend."""
import os
import tempfile


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        if db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'crm.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        if not self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
                "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
            }
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", self.SECRET_KEY)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", 60))
        self.MAIL_SERVER = os.getenv("MAIL_SERVER", "")
        self.MAIL_PORT = int(os.getenv("MAIL_PORT", 25))
        self.MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
        self.MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
        self.MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
        self.MAIL_USE_SSL = os.getenv("MAIL_USE_SSL", "false").lower() == "true"
        self.MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "")
        self.MAIL_SENDER_NAME = os.getenv("MAIL_SENDER_NAME", "Customer Support Team")
        self.SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", "+1-800-123-4567")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@example.com")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")
        self.RECENT_COMPLAINTS_LIMIT = int(os.getenv("RECENT_COMPLAINTS_LIMIT", 5))
        self.COMPLAINTS_PER_PAGE = int(os.getenv("COMPLAINTS_PER_PAGE", 20))
        self.NOTIFY_ON_RESOLUTION = os.getenv("NOTIFY_ON_RESOLUTION", "true").lower() == "true"


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.SQLALCHEMY_DATABASE_URI = "sqlite://"
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
        self.MAIL_SERVER = ""
        self.DEFAULT_ADMIN_USERNAME = "admin"
        self.DEFAULT_ADMIN_EMAIL = "admin@example.com"
        self.DEFAULT_ADMIN_PASSWORD = "Admin@Password123"
        self.LOG_LEVEL = "WARNING"
        self.LOG_DIR = os.path.join(tempfile.gettempdir(), "crm-test-logs")
