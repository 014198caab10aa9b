# src/patinfly/config.py

import os
from dotenv import load_dotenv

# Environment overrides come from a local .env file when present
load_dotenv()

# --- File Paths ---
DATABASE_FILE = os.environ.get('PATINFLY_DB_FILE', 'patinfly.db')
ENCRYPTION_KEY_FILE = os.environ.get('PATINFLY_KEY_FILE', 'secret.key')
SEED_DATA_PACKAGE = 'patinfly.data'
BIKE_SEED_FILE = 'bikes.json'
USER_SEED_FILE = 'user.json'
PRICING_PLAN_SEED_FILE = 'system_pricing_plans.json'

# --- Remote API ---
API_BASE_URL = os.environ.get('PATINFLY_API_URL', 'https://api.patinfly.dev/')
STATIC_API_KEY = os.environ.get('PATINFLY_STATIC_TOKEN', '')
CONNECT_TIMEOUT_SECONDS = 30
READ_TIMEOUT_SECONDS = 30
REQUEST_ORIGIN = ''
DEMO_MODE = os.environ.get('PATINFLY_DEMO_MODE', '0').lower() in ('1', 'true', 'yes')

# --- Session ---
SETTINGS_NAMESPACE = 'PatinflyPrefs'
AUTH_TOKEN_KEY = 'auth_token'
DEFAULT_GROUP = 'ASM22'
FALLBACK_USER_GROUP = 'default'

# --- Password hashing ---
BCRYPT_ROUNDS = 12

# --- Brute-Force Protection ---
MAX_LOGIN_ATTEMPTS = 3
LOCKOUT_TIME_SECONDS = 60

# --- Logging ---
LOG_LEVEL = os.environ.get('PATINFLY_LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

# --- Bike type prefixes reported by the vehicle API ---
BIKE_TYPE_PREFIXES = [
    ('EB', 'Electric'),
    ('RB', 'Urban'),
    ('SCOOTER', 'Gas'),
]
UNKNOWN_BIKE_TYPE = 'Unknown'

# --- First run ---
SEED_ON_FIRST_RUN = os.environ.get('PATINFLY_SEED_ON_FIRST_RUN', '0').lower() in ('1', 'true', 'yes')
NETWORK_PROBE_TIMEOUT_SECONDS = 3
