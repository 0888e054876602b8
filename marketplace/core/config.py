import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Tests set DISABLE_DOTENV=1 so a developer's .env cannot redirect them to Firestore.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

STORE_BACKENDS = {"firestore", "memory"}


class Settings:
    """Runtime settings read from the environment."""

    def __init__(self):
        self.store_backend = (os.getenv("STORE_BACKEND") or "firestore").strip().lower()
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {sorted(STORE_BACKENDS)}, got '{self.store_backend}'")

        credentials_path = os.getenv("FIREBASE_CREDENTIALS") or "service-account-key.json"
        if not os.path.isabs(credentials_path):
            credentials_path = (PROJECT_ROOT / credentials_path).as_posix()
        self.firebase_credentials = credentials_path
        self.firebase_project_id = os.getenv("FIREBASE_PROJECT_ID") or None

        self.log_level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "6001") or "6001")


@lru_cache
def get_settings() -> Settings:
    return Settings()
