"""YAML/dict config loader for email-guard.

Supports loading from a YAML file or a plain dict (for embedding in a larger
application config).  Secrets themselves never live in this config; it only
names the environment variables that hold them.

Example YAML:

    email_guard:
      hmac_env: HMAC_SECRET
      cipher_env: CRYPTO_KEY
      validate_secrets: true
      secret_policy: strict      # "strict" (fail closed) or "warn"
      store:
        backend: sqlite          # "memory" or "sqlite"
        path: ~/.email-guard/users.db
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError
from .guard import EmailGuard
from .keys import CIPHER_ENV, HMAC_ENV, POLICIES, validate_environment_secrets
from .store import MemoryUserStore, UserStore
from .store_sqlite import SqliteUserStore

BACKENDS = ("memory", "sqlite")


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "email_guard" key or flat
    if "email_guard" in data:
        data = data["email_guard"] or {}

    store = data.get("store") or {}
    cfg = {
        "hmac_env": data.get("hmac_env", HMAC_ENV),
        "cipher_env": data.get("cipher_env", CIPHER_ENV),
        "validate_secrets": bool(data.get("validate_secrets", False)),
        "secret_policy": data.get("secret_policy", "strict"),
        "store_backend": store.get("backend", "memory"),
        "store_path": store.get("path", "users.db"),
    }
    if cfg["secret_policy"] not in POLICIES:
        raise ConfigurationError(f"Unknown secret_policy: {cfg['secret_policy']!r}")
    if cfg["store_backend"] not in BACKENDS:
        raise ConfigurationError(f"Unknown store backend: {cfg['store_backend']!r}")
    return cfg


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml  # optional dependency
    with open(path) as f:
        return load_config(yaml.safe_load(f))


def _normalized(config: dict[str, Any]) -> dict[str, Any]:
    return config if "store_backend" in config else load_config(config)


def create_guard(
    config: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> EmailGuard:
    """Create a fully configured guard, running the secret checks if enabled."""
    cfg = _normalized(config or {})

    if cfg["validate_secrets"]:
        validate_environment_secrets(
            environ,
            policy=cfg["secret_policy"],
            secrets_to_check=((cfg["hmac_env"], True), (cfg["cipher_env"], True)),
        )

    return EmailGuard.from_env(
        environ, hmac_var=cfg["hmac_env"], cipher_var=cfg["cipher_env"]
    )


def create_store(config: dict[str, Any] | None = None) -> UserStore:
    """Create the configured user store."""
    cfg = _normalized(config or {})
    if cfg["store_backend"] == "sqlite":
        return SqliteUserStore(db_path=cfg["store_path"])
    return MemoryUserStore()
