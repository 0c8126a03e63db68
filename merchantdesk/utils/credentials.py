"""Bootstrap the Google service-account key from environment variables.

On Render (and similar PaaS), credential JSON files can't be committed
to git.  Instead, paste the JSON content into an env var and this module
writes it to ``GOOGLE_SERVICE_ACCOUNT_PATH`` at startup.

Checked in order:
    GOOGLE_SERVICE_ACCOUNT_JSON
    GOOGLE_SERVICE_ACCOUNT_PATH   (only if the value looks like JSON)
    GOOGLE_SA_JSON
"""
import json
import os

from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log

_ENV_VARS = ("GOOGLE_SERVICE_ACCOUNT_JSON", "GOOGLE_SERVICE_ACCOUNT_PATH", "GOOGLE_SA_JSON")

MISSING_SERVICE_ACCOUNT_EMAIL = "service-account-email-not-found"


def _is_json(value: str) -> bool:
    """Check if a string looks like JSON content (not a file path)."""
    stripped = value.strip()
    return stripped.startswith("{") and stripped.endswith("}")


def bootstrap_credentials() -> bool:
    """Write the service-account key file from env vars if it doesn't exist.

    Returns True when a key file is present afterwards.
    """
    file_path = get_settings().google_service_account_path
    if os.path.exists(file_path):
        log.info(f"Credential file {file_path} already exists, skipping")
        return True

    json_str = None
    source_var = None
    for var in _ENV_VARS:
        value = os.environ.get(var, "")
        if value and _is_json(value):
            json_str = value
            source_var = var
            break

    if not json_str:
        log.warning(f"No service account key at {file_path} and no JSON env var set")
        return False

    try:
        json.loads(json_str)  # Validate it's real JSON
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
        with open(file_path, "w") as f:
            f.write(json_str)
        log.info(f"Wrote {file_path} from {source_var}")
        return True
    except json.JSONDecodeError:
        log.error(f"{source_var} is not valid JSON, skipping")
    except OSError as e:
        log.error(f"Failed to write {file_path} from {source_var}: {e}")
    return False


def get_service_account_email(path: str | None = None) -> str:
    """Return ``client_email`` from the key file, or a placeholder when unreadable."""
    key_path = path or get_settings().google_service_account_path
    try:
        with open(key_path) as f:
            return json.load(f).get("client_email") or MISSING_SERVICE_ACCOUNT_EMAIL
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"Error reading service account key {key_path}: {e}")
        return MISSING_SERVICE_ACCOUNT_EMAIL
