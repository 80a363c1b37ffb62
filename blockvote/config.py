import os


DATA_DIR = os.path.join(os.getcwd(), "data")
SECRET_DIR = os.path.join(os.getcwd(), "secrets")

DATABASE_URL = os.getenv("BLOCKVOTE_DATABASE_URL")
if not DATABASE_URL:
    os.makedirs(DATA_DIR, exist_ok=True)
    DATABASE_URL = f"sqlite:///{os.path.join(DATA_DIR, 'blockvote.db')}"

# Seconds a storage call may wait on a locked database before failing.
STORAGE_TIMEOUT_SECONDS = float(os.getenv("BLOCKVOTE_STORAGE_TIMEOUT", "5"))

LOG_LEVEL = os.getenv("BLOCKVOTE_LOG_LEVEL", "INFO").upper()


def _load_secret_key() -> str:
    key = os.getenv("BLOCKVOTE_SECRET_KEY")
    if key:
        return key
    os.makedirs(SECRET_DIR, exist_ok=True)
    secret_file = os.path.join(SECRET_DIR, "jwt_secret.txt")
    if not os.path.exists(secret_file):
        with open(secret_file, "w", encoding="utf-8") as f:
            f.write(os.urandom(32).hex())
    with open(secret_file, "r", encoding="utf-8") as f:
        return f.read().strip()


SECRET_KEY = _load_secret_key()
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("BLOCKVOTE_ACCESS_TOKEN_MINUTES", str(60 * 8)))

ADMIN_USERNAME = os.getenv("BLOCKVOTE_ADMIN_USERNAME")
ADMIN_PASSWORD = os.getenv("BLOCKVOTE_ADMIN_PASSWORD")

# Ledger column capacity: "0x" + 62 hex chars (31 random bytes).
TRANSACTION_HASH_LENGTH = 64
TRANSACTION_HASH_PREFIX = "0x"

VOTER_TOKEN_PREFIX = "ANON_"
VOTER_TOKEN_LENGTH = 12

VOTE_DATA_SAMPLE_LIMIT = 1000

APP_VERSION = "1.0.0"
