import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, "") or "").strip() or default)
    except Exception:
        return default


wsgi_app = "onboarding:create_app()"
bind = f"0.0.0.0:{_env_int('PORT', 5002)}"

# The rate limiter is per process; more workers means a looser effective limit.
workers = max(1, _env_int("WEB_CONCURRENCY", 2))
threads = max(1, _env_int("PYTHON_THREADS", 4))

timeout = max(10, _env_int("GUNICORN_TIMEOUT", 60))
graceful_timeout = max(5, _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30))
keepalive = max(1, _env_int("GUNICORN_KEEPALIVE", 5))

accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-") or None
errorlog = "-"
loglevel = str(os.getenv("LOG_LEVEL", "info") or "info").lower()

max_requests = max(0, _env_int("GUNICORN_MAX_REQUESTS", 0))
max_requests_jitter = max(0, _env_int("GUNICORN_MAX_REQUESTS_JITTER", 0))
