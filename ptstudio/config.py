"""
Application Configuration
Load settings from environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Database Configuration
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", 3306))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "pt_studio")
DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", 5))
DB_READ_TIMEOUT = int(os.getenv("DB_READ_TIMEOUT", 10))
DB_WRITE_TIMEOUT = int(os.getenv("DB_WRITE_TIMEOUT", 10))

# Application Settings
APP_NAME = os.getenv("APP_NAME", "PT Studio API")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# Check-in Settings
CHECKIN_WINDOW_SECONDS = int(os.getenv("CHECKIN_WINDOW_SECONDS", 30))
CHECKIN_CAS_RETRIES = int(os.getenv("CHECKIN_CAS_RETRIES", 3))
MESSAGE_LOCALE = os.getenv("MESSAGE_LOCALE", "tr")

# Background Jobs (0 disables the reconcile job)
RECONCILE_INTERVAL_MINUTES = int(os.getenv("RECONCILE_INTERVAL_MINUTES", 60))

# Client surfaces (kiosk / QR landing)
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8181")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", 10))

# Server (run.py)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8181))
LOG_DIR = os.getenv("LOG_DIR", "logs")
