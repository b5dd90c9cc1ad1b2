"""Environment-driven settings (optionally from a .env file)."""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_DIGEST = os.getenv("RSASIGN_DEFAULT_DIGEST", "SHA256")
MIN_KEY_SIZE = int(os.getenv("RSASIGN_MIN_KEY_SIZE", "2048"))
LOG_LEVEL = os.getenv("RSASIGN_LOG_LEVEL", "INFO")
CERT_DAYS = int(os.getenv("RSASIGN_CERT_DAYS", "365"))

# Database configuration
DB_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': int(os.getenv('DB_PORT', '3306')),
    'user': os.getenv('DB_USER', 'rsauser'),
    'password': os.getenv('DB_PASSWORD', 'rsapass'),
    'charset': 'utf8mb4',
    'autocommit': True
}

# Database name
DB_NAME = os.getenv('DB_NAME', 'rsasign')
