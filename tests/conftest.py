"""Test environment: fast bcrypt and an SQLite URL so importing the app needs no Postgres driver."""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
