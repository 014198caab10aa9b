# src/patinfly/validation.py

import re
from datetime import datetime

def _is_safe_string(s: str) -> bool:
    """
    Internal check for unsafe characters, starting with null bytes.
    Returns False if the string is unsafe.
    """
    if '\0' in str(s):
        return False
    return True

def normalize_email(email: str | None) -> str:
    """Canonical form used for every email lookup and for the unique email index."""
    return (email or "").strip().lower()

def is_valid_email(email: str | None) -> bool:
    """Validates email address format after normalization."""
    if not email or not _is_safe_string(email): return False
    pattern = r"^[\w.+-]+@[\w.-]+\.\w{2,}$"
    return re.match(pattern, normalize_email(email)) is not None

def clamp_battery_level(level: int) -> int:
    return max(0, min(100, int(level)))

def is_valid_latitude(lat: float | None) -> bool:
    return lat is not None and -90.0 <= lat <= 90.0

def is_valid_longitude(lon: float | None) -> bool:
    return lon is not None and -180.0 <= lon <= 180.0

def is_valid_iso_date(date_string: str) -> bool:
    """Validates date format: YYYY-MM-DD, optionally followed by a time part."""
    if not date_string or not _is_safe_string(date_string): return False
    try:
        datetime.fromisoformat(date_string.replace('Z', '+00:00'))
        return True
    except ValueError:
        return False
