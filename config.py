import os
import sys

from dotenv import load_dotenv

from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test runs to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", RuntimeEnvironment.DEV.value))
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('RUNTIME_ENVIRONMENT', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

# Order Service (REST) Configuration
API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:5000").rstrip("/")
HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10"))

# Realtime push endpoint (websocket); empty = realtime disabled
REALTIME_URL = os.environ.get("REALTIME_URL", "")

# Durable cart storage (any SQLAlchemy URL, SQLite by default)
# TEST runs keep the cart in memory so test sessions never touch ./data
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.TEST:
    CART_DB_URL = os.environ.get("CART_DB_URL", "sqlite://")
else:
    CART_DB_URL = os.environ.get("CART_DB_URL", "sqlite:///data/cart.db")

# Localization
APP_LANGUAGE = os.environ.get("APP_LANGUAGE", "en")  # Default to English

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask tokens and contact data in logs

# Log Retention: Environment-specific defaults
# Dev: keep 30 days for debugging
# Prod: Use 5 days default to save disk space
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
