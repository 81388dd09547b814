import os
from dotenv import load_dotenv

load_dotenv()

# External signer; one of command / url is normally set
SIGNER_COMMAND = os.getenv("SIGCONFORM_SIGNER_CMD", "")
SIGNER_URL = os.getenv("SIGCONFORM_SIGNER_URL", "")
SIGNER_TIMEOUT_SEC = float(os.getenv("SIGCONFORM_SIGNER_TIMEOUT_SEC", "10"))
HEADER_DELIMITER = os.getenv("SIGCONFORM_HEADER_DELIMITER", " ")

MAX_CONCURRENCY = int(os.getenv("SIGCONFORM_CONCURRENCY", "4"))

KEYS_MANIFEST = os.getenv("SIGCONFORM_KEYS", "config/keys.yml")
REGISTRY_FILE = os.getenv("SIGCONFORM_REGISTRY", "")  # empty: built-in registry table
VECTORS_DIR = os.getenv("SIGCONFORM_VECTORS_DIR", "")  # empty: built-in fixtures

# created/expires offset used by the temporal-skew probes
TEMPORAL_SKEW_SEC = int(os.getenv("SIGCONFORM_SKEW_SEC", "1000"))

LOG_LEVEL = os.getenv("SIGCONFORM_LOG_LEVEL", "INFO").upper()
