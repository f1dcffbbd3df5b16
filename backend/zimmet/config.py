# backend/zimmet/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///zimmet.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Pending custody older than this shows up in the overdue report
    OVERDUE_THRESHOLD_MINUTES = int(os.environ.get("OVERDUE_THRESHOLD_MINUTES", "15"))

    # Seconds between keep-alive comments on the notification stream
    NOTIFICATION_KEEPALIVE_SECONDS = int(os.environ.get("NOTIFICATION_KEEPALIVE_SECONDS", "25"))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]
