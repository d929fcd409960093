import os

# Test configuration must be in place before any bugtracker import reads settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["JWT_EXPIRE"] = "7d"
os.environ["JWT_REFRESH_EXPIRE"] = "30d"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOCKOUT_MAX_ATTEMPTS"] = "5"
os.environ["LOCKOUT_DURATION_MINUTES"] = "120"
os.environ["API_PREFIX"] = "/api"
os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")
