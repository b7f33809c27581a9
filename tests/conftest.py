import os

os.environ.setdefault("PYTHON_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("STORAGE_BUCKET", "design_docs")
