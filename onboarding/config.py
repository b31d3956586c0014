from __future__ import annotations

import os
from dataclasses import dataclass


def _csv(value: str) -> list[str]:
    items: list[str] = []
    for part in (value or "").split(","):
        item = part.strip()
        if item:
            items.append(item)
    return items


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default) or default)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


@dataclass(frozen=True)
class BaseConfig:
    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"
    TIMEZONE_DISPLAY: str = "Asia/Kolkata"

    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "onboarding"
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    JWT_SECRET: str = "dev-secret"
    JWT_EXP_MINUTES: int = 720

    CORS_ORIGINS: list[str] | str = (
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"

    RATE_LIMIT_GLOBAL: str = "1200 per minute"
    RATE_LIMIT_DEFAULT: str = "300 per minute"
    RATE_LIMIT_LOGIN: str = "30 per minute"

    TRUST_PROXY_HEADERS: bool = True

    # Workflow
    EMPLOYEE_CODE_PREFIX: str = "JP-EMP"
    EMPLOYEE_CODE_PAD: int = 6
    EMPLOYEE_CODE_MAX_ATTEMPTS: int = 1_000_000
    SEED_DEPARTMENTS: bool = True
    DEPARTMENT_CACHE_TTL_SECONDS: int = 60
    PAGE_DEFAULT_LIMIT: int = 100
    PAGE_MAX_LIMIT: int = 1000
    UPLOAD_URL_PREFIX: str = "/uploads/hr"

    def __post_init__(self) -> None:
        object.__setattr__(self, "APP_VERSION", _env_str("APP_VERSION", self.APP_VERSION))
        object.__setattr__(self, "TIMEZONE_DISPLAY", _env_str("TIMEZONE_DISPLAY", self.TIMEZONE_DISPLAY))

        object.__setattr__(self, "MONGODB_URI", _env_str("MONGODB_URI", self.MONGODB_URI))
        object.__setattr__(self, "DB_NAME", _env_str("DB_NAME", self.DB_NAME))
        object.__setattr__(
            self,
            "MONGO_SERVER_SELECTION_TIMEOUT_MS",
            _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", self.MONGO_SERVER_SELECTION_TIMEOUT_MS),
        )

        object.__setattr__(self, "JWT_SECRET", _env_str("JWT_SECRET", self.JWT_SECRET))
        object.__setattr__(self, "JWT_EXP_MINUTES", _env_int("JWT_EXP_MINUTES", self.JWT_EXP_MINUTES))

        cors_raw = os.getenv("CORS_ORIGINS")
        if cors_raw is not None:
            cors_raw = str(cors_raw or "").strip()
            if cors_raw == "*":
                object.__setattr__(self, "CORS_ORIGINS", "*")
            else:
                object.__setattr__(self, "CORS_ORIGINS", _csv(cors_raw))
        else:
            object.__setattr__(self, "CORS_ORIGINS", _csv(str(self.CORS_ORIGINS)))

        object.__setattr__(
            self, "CORS_ALLOW_CREDENTIALS", _env_bool("CORS_ALLOW_CREDENTIALS", self.CORS_ALLOW_CREDENTIALS)
        )

        object.__setattr__(self, "LOG_LEVEL", _env_str("LOG_LEVEL", self.LOG_LEVEL).upper())
        object.__setattr__(self, "LOG_FORMAT", _env_str("LOG_FORMAT", self.LOG_FORMAT).lower())

        object.__setattr__(self, "RATE_LIMIT_GLOBAL", _env_str("RATE_LIMIT_GLOBAL", self.RATE_LIMIT_GLOBAL))
        object.__setattr__(self, "RATE_LIMIT_DEFAULT", _env_str("RATE_LIMIT_DEFAULT", self.RATE_LIMIT_DEFAULT))
        object.__setattr__(self, "RATE_LIMIT_LOGIN", _env_str("RATE_LIMIT_LOGIN", self.RATE_LIMIT_LOGIN))

        object.__setattr__(self, "TRUST_PROXY_HEADERS", _env_bool("TRUST_PROXY_HEADERS", self.TRUST_PROXY_HEADERS))

        object.__setattr__(
            self, "EMPLOYEE_CODE_PREFIX", _env_str("EMPLOYEE_CODE_PREFIX", self.EMPLOYEE_CODE_PREFIX).strip()
        )
        object.__setattr__(self, "EMPLOYEE_CODE_PAD", max(1, _env_int("EMPLOYEE_CODE_PAD", self.EMPLOYEE_CODE_PAD)))
        object.__setattr__(
            self,
            "EMPLOYEE_CODE_MAX_ATTEMPTS",
            max(1, _env_int("EMPLOYEE_CODE_MAX_ATTEMPTS", self.EMPLOYEE_CODE_MAX_ATTEMPTS)),
        )
        object.__setattr__(self, "SEED_DEPARTMENTS", _env_bool("SEED_DEPARTMENTS", self.SEED_DEPARTMENTS))
        object.__setattr__(
            self,
            "DEPARTMENT_CACHE_TTL_SECONDS",
            max(0, _env_int("DEPARTMENT_CACHE_TTL_SECONDS", self.DEPARTMENT_CACHE_TTL_SECONDS)),
        )
        object.__setattr__(self, "PAGE_MAX_LIMIT", max(1, _env_int("PAGE_MAX_LIMIT", self.PAGE_MAX_LIMIT)))
        object.__setattr__(
            self,
            "PAGE_DEFAULT_LIMIT",
            min(self.PAGE_MAX_LIMIT, max(1, _env_int("PAGE_DEFAULT_LIMIT", self.PAGE_DEFAULT_LIMIT))),
        )
        object.__setattr__(
            self, "UPLOAD_URL_PREFIX", _env_str("UPLOAD_URL_PREFIX", self.UPLOAD_URL_PREFIX).rstrip("/")
        )

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    def validate(self) -> None:
        if self.IS_PRODUCTION and str(self.JWT_SECRET or "").strip() in {"", "dev-secret"}:
            raise RuntimeError("JWT_SECRET must be set in production")
        if self.IS_PRODUCTION and (not str(self.MONGODB_URI or "").strip() or not str(self.DB_NAME or "").strip()):
            raise RuntimeError("MONGODB_URI and DB_NAME must be set in production")
        if self.IS_PRODUCTION and self.MONGODB_URI.startswith("mongomock://"):
            raise RuntimeError("mongomock cannot be used in production")
        if not self.EMPLOYEE_CODE_PREFIX:
            raise RuntimeError("EMPLOYEE_CODE_PREFIX must not be empty")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    JWT_SECRET: str = "test-secret"
    DEPARTMENT_CACHE_TTL_SECONDS: int = 0


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
