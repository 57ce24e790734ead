"""
Centralized configuration — env vars, domain enums, loop defaults.
"""
import os


def _env_flag(name, default='false'):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


# ── Environment ──────────────────────────────────────────────────────────────
APP_ENV = os.getenv('APP_ENV', 'development')
IS_PRODUCTION = APP_ENV == 'production'
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (circuit breaker state) ────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ───────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI ───────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
AI_MOCK_MODE = _env_flag('AI_MOCK_MODE')

# ── Uploads ──────────────────────────────────────────────────────────────────
MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))
IMPORT_CHUNK_SIZE = int(os.getenv('IMPORT_CHUNK_SIZE', '500'))

# ── Domain enums ─────────────────────────────────────────────────────────────
PLATFORMS = ('tiktok', 'instagram', 'youtube')

LOCALES = ('en-US', 'es-ES', 'fr-FR', 'de-DE', 'pt-BR')

# ── CSV import ───────────────────────────────────────────────────────────────
REQUIRED_CSV_COLUMNS = ('angle_id', 'impressions', 'clicks', 'conversions', 'spend', 'revenue')

# ── Winner selection / iteration ─────────────────────────────────────────────
WINNER_METRICS = ('ctr', 'roas', 'conversions')
DEFAULT_WINNER_METRIC = 'ctr'
DEFAULT_TOP_N = 3
MAX_TOP_N = 10
DEFAULT_ITERATION_COUNT = 5
MAX_ITERATION_COUNT = 10
