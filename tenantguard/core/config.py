from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getlist(name: str) -> tuple[str, ...]:
    raw = _getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Limits:
    """Tenant caps and credit economy knobs."""

    max_organizations_per_user: int = 5
    max_members_per_organization: int = 5
    max_projects_per_organization: int = 10
    max_pending_invites_per_org: int = 3
    invite_cooldown_seconds: int = 60
    invite_ttl_days: int = 7
    free_credits: int = 5
    credit_reminder_threshold: int = 10
    renewal_credit_threshold: int = 10
    renewal_reminder_days: int = 32
    purge_after_days: int = 30


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    site_url: str
    jwt_public_key: str | None = None
    jwks_url: str | None = None
    jwt_issuer: str = "tenant-guard"
    jwt_audience: str = "tenant-guard"
    jwt_algorithm: str = "ES256"
    super_admin_emails: tuple[str, ...] = ()
    cron_secret: str | None = None
    stripe_secret_key: str | None = None
    stripe_price_id_pro: str | None = None
    stripe_price_id_pro_plus: str | None = None
    stripe_webhook_secret: str | None = None
    resend_api_key: str | None = None
    email_from: str = "no-reply@example.com"
    check_disposable_emails: bool = True
    limits: Limits = field(default_factory=Limits)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_limits() -> Limits:
    return Limits(
        max_organizations_per_user=_getint("MAX_ORGANIZATIONS_PER_USER", 5, minimum=1),
        max_members_per_organization=_getint(
            "MAX_MEMBERS_PER_ORGANIZATION", 5, minimum=1
        ),
        max_projects_per_organization=_getint(
            "MAX_PROJECTS_PER_ORGANIZATION", 10, minimum=1
        ),
        max_pending_invites_per_org=_getint("MAX_PENDING_INVITES_PER_ORG", 3, minimum=1),
        invite_cooldown_seconds=_getint("INVITE_COOLDOWN_SECONDS", 60),
        invite_ttl_days=_getint("INVITE_TTL_DAYS", 7, minimum=1),
        free_credits=_getint("FREE_CREDITS", 5),
        credit_reminder_threshold=_getint("CREDIT_REMINDER_THRESHOLD", 10),
        renewal_credit_threshold=_getint("RENEWAL_CREDIT_THRESHOLD", 10),
        renewal_reminder_days=_getint("RENEWAL_REMINDER_DAYS", 32, minimum=1),
        purge_after_days=_getint("PURGE_AFTER_DAYS", 30, minimum=1),
    )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    jwt_public_key = _getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n") or None
    jwks_url = _getenv("JWKS_URL", "") or None
    if app_env_raw == "prod" and jwt_public_key is None and jwks_url is None:
        raise ValueError("JWT_PUBLIC_KEY or JWKS_URL must be set when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        site_url=_getenv("SITE_URL", "http://localhost:3000").rstrip("/"),
        jwt_public_key=jwt_public_key,
        jwks_url=jwks_url,
        jwt_issuer=_getenv("JWT_ISSUER", "tenant-guard"),
        jwt_audience=_getenv("JWT_AUDIENCE", "tenant-guard"),
        jwt_algorithm=_getenv("JWT_ALGORITHM", "ES256"),
        super_admin_emails=_getlist("SUPER_ADMIN_EMAILS"),
        cron_secret=_getenv("CRON_SECRET", "") or None,
        stripe_secret_key=_getenv("STRIPE_SECRET_KEY", "") or None,
        stripe_price_id_pro=_getenv("STRIPE_PRICE_ID_PRO", "") or None,
        stripe_price_id_pro_plus=_getenv("STRIPE_PRICE_ID_PRO_PLUS", "") or None,
        stripe_webhook_secret=_getenv("STRIPE_WEBHOOK_SECRET", "") or None,
        resend_api_key=_getenv("RESEND_API_KEY", "") or None,
        email_from=_getenv("EMAIL_FROM", "no-reply@example.com"),
        check_disposable_emails=_getbool("CHECK_DISPOSABLE_EMAILS", True),
        limits=load_limits(),
    )


SETTINGS = load_settings()
