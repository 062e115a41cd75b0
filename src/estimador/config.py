from __future__ import annotations

import os
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "estimador-nfe"

KEYRING_SERVICE = "estimador-nfe"
KEYRING_USERNAME = "rate-service-api-key"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Only checks sources available before .env is loaded (env var set in the
    shell, dev layout). Returns None if only platformdirs would resolve and
    that directory does not exist yet.
    """
    from_env = os.environ.get("ESTIMADOR_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/estimador/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("ESTIMADOR_CONFIG_DIR", "config")


NFE_NS = "http://www.portalfiscal.inf.br/nfe"

RATE_SERVICE_TIMEOUT = 30


# --- Keyring helpers ---


def _get_keyring_api_key() -> str | None:
    """Try to get the rate-service API key from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_api_key(api_key: str) -> bool:
    """Store the rate-service API key in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, api_key)
        return True
    except Exception:
        return False


# --- YAML settings ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_settings() -> dict:
    """Load config/settings.yaml, or an empty dict when it does not exist."""
    path = get_config_dir() / "settings.yaml"
    if not path.is_file():
        return {}
    return load_yaml(path)


def _rate_service_section() -> dict:
    section = load_settings().get("rate_service") or {}
    return section if isinstance(section, dict) else {}


def get_rate_service_url() -> str | None:
    """Return the rate-service endpoint URL.

    Priority: 1) ESTIMADOR_RATE_SERVICE_URL env var, 2) settings.yaml.
    None means estimates run offline, using only the static fallback table.
    """
    url = os.environ.get("ESTIMADOR_RATE_SERVICE_URL")
    if url:
        return url
    return _rate_service_section().get("url") or None


def get_rate_service_timeout() -> float:
    """Return the per-request timeout (seconds) for the rate service."""
    raw = os.environ.get("ESTIMADOR_RATE_SERVICE_TIMEOUT")
    if raw is None:
        raw = _rate_service_section().get("timeout", RATE_SERVICE_TIMEOUT)
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float(RATE_SERVICE_TIMEOUT)


def get_rate_api_key() -> str | None:
    """Return the rate-service API key.

    Priority: 1) ESTIMADOR_RATE_API_KEY env var, 2) OS keyring.
    """
    key = os.environ.get("ESTIMADOR_RATE_API_KEY")
    if key is not None:
        return key
    return _get_keyring_api_key()


def get_log_level() -> str:
    return os.environ.get("ESTIMADOR_LOG_LEVEL", "WARNING").upper()
