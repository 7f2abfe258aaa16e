import os

# Must be in place before any app module is imported (app.core.config validates at import)
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET_KEY", "test-secret")
