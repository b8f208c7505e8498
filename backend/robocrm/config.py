# backend/robocrm/config.py
from __future__ import annotations
import os


def _split_origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/robocrm.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///robocrm.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # File storage collaborator (logos, robot images, generated PDFs)
    STORAGE_ROOT = os.environ.get("STORAGE_ROOT", "storage")
    STORAGE_PUBLIC_BASE_URL = os.environ.get("STORAGE_PUBLIC_BASE_URL", "/files")

    # Serverless functions collaborator (email sending, map token)
    FUNCTIONS_BASE_URL = os.environ.get("FUNCTIONS_BASE_URL", "http://localhost:54321/functions/v1")
    FUNCTIONS_API_KEY = os.environ.get("FUNCTIONS_API_KEY", "")
    FUNCTIONS_TIMEOUT_SECONDS = float(os.environ.get("FUNCTIONS_TIMEOUT_SECONDS", "30"))

    CORS_ALLOWED_ORIGINS = _split_origins(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        )
    )
