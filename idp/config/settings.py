"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from idp.core.resolver import ROLE_PRECEDENCE_MOST_RECENT, ROLE_PRECEDENCE_ROLE_ID

SECRETS_DIR = Path("/run/secrets")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] Loaded {secret_name} from {SECRETS_DIR}")
                return secret_value
        except OSError as e:
            print(f"[settings] Failed to read {secret_file}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str

    # API bearer tokens
    idp_issuer: str = ""
    jwks_url: str = ""
    api_audience: str = ""

    # Directory
    directory_seed_file: Optional[Path] = None

    # Attribute resolution
    role_precedence: str = ROLE_PRECEDENCE_MOST_RECENT
    attribute_value_separator: str = ","

    # Audit
    audit_log_dir: Path = Path(".runtime/audit")
    audit_log_signing_key: str = ""


def _bool_env(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _bool_env("DEMO_MODE")

    # Flask secret key
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    # Token validation
    idp_issuer = os.environ.get("IDP_ISSUER", "http://localhost:8080/realms/demo" if demo_mode else "")
    if not idp_issuer:
        raise RuntimeError("Environment variable IDP_ISSUER is required in production mode.")
    jwks_url = os.environ.get("IDP_JWKS_URL", f"{idp_issuer.rstrip('/')}/protocol/openid-connect/certs")
    api_audience = os.environ.get("API_AUDIENCE", "")

    seed = os.environ.get("DIRECTORY_SEED_FILE", "").strip()
    directory_seed_file = Path(seed) if seed else None

    role_precedence = os.environ.get("ROLE_PRECEDENCE", ROLE_PRECEDENCE_MOST_RECENT).strip().lower()
    if role_precedence not in (ROLE_PRECEDENCE_MOST_RECENT, ROLE_PRECEDENCE_ROLE_ID):
        raise RuntimeError(
            f"ROLE_PRECEDENCE must be '{ROLE_PRECEDENCE_MOST_RECENT}' or '{ROLE_PRECEDENCE_ROLE_ID}', got '{role_precedence}'"
        )

    separator = os.environ.get("ATTRIBUTE_VALUE_SEPARATOR", ",")
    if not separator:
        raise RuntimeError("ATTRIBUTE_VALUE_SEPARATOR must not be empty")

    audit_log_dir = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if not audit_log_signing_key and demo_mode:
        audit_log_signing_key = "demo-audit-signing-key-change-in-production"
        print("[demo-mode] Using demo AUDIT_LOG_SIGNING_KEY")

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; issuer={idp_issuer}; role_precedence={role_precedence}")

    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        idp_issuer=idp_issuer,
        jwks_url=jwks_url,
        api_audience=api_audience,
        directory_seed_file=directory_seed_file,
        role_precedence=role_precedence,
        attribute_value_separator=separator,
        audit_log_dir=audit_log_dir,
        audit_log_signing_key=audit_log_signing_key,
    )
