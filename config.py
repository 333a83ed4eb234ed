# config.py
from pathlib import Path

# Project root; templates are read from BASE_DIR / "site"
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"

# Interface to bind. Keep it on loopback: the page signs with your identity
HOST = "localhost"

# Port for the signing page and /api
PORT = 8000

# Level shared by uvicorn and the pysignnote loggers (lowercase level name)
LOG_LEVEL = "info"

# Trusted keys database (Tortoise ORM connection string)
DB_URL = f"sqlite://{DATA_DIR / 'pysignnote.db'}"

# Encrypted identity store and the Fernet master key protecting it
IDENTITY_STORE_PATH = DATA_DIR / "identity.json"
MASTER_KEY_PATH = DATA_DIR / "master.key"

# Size of the identity RSA key generated on first run
RSA_KEY_SIZE = 2048

# Prefix for the JSON API router
API_PREFIX = "/api"
