import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ✅ Database (quota store)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./growbot.db")
STORAGE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "10"))
RUN_MIGRATIONS = _env_bool("RUN_MIGRATIONS", "0")

# ✅ Supabase identity
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

# ✅ Quota
DAILY_REQUEST_LIMIT = int(os.getenv("DAILY_REQUEST_LIMIT", "100"))
QUOTA_ATOMIC_INCREMENT = _env_bool("QUOTA_ATOMIC_INCREMENT", "true")

# ✅ Gemini
GEMINI_TIMEOUT_SECONDS = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60"))
FAST_MODEL = os.getenv("FAST_MODEL", "gemini-3-flash-preview")
PRO_MODEL = os.getenv("PRO_MODEL", "gemini-3-pro-preview")
WAKEUP_MODEL = os.getenv("WAKEUP_MODEL", "gemini-2.5-flash-lite")
ALLOWED_MODELS = [
    m.strip()
    for m in os.getenv("ALLOWED_MODELS", f"{FAST_MODEL},{PRO_MODEL}").split(",")
    if m.strip()
]
DIAGNOSIS_THINKING_LEVEL = os.getenv("DIAGNOSIS_THINKING_LEVEL", "high") or None

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_gemini_api_key():
    """Read the provider key at call time so a missing key fails the request, not the import."""
    return os.getenv("GEMINI_API_KEY")
