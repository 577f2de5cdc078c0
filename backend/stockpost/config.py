# backend/stockpost/config.py
from __future__ import annotations
import os


STOCK_ENFORCEMENT_LENIENT = "lenient"
STOCK_ENFORCEMENT_STRICT = "strict"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockpost.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockpost.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # lenient: a sale commits even when its product lines cannot be fully
    #          covered by active lots (shortfall is logged)
    # strict:  the sale is rejected and nothing is written
    STOCK_ENFORCEMENT = os.environ.get("STOCK_ENFORCEMENT", STOCK_ENFORCEMENT_LENIENT)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API (comma separated)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if origin.strip()
    ]
