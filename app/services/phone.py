"""Nigerian phone number normalisation"""

import re

COUNTRY_CODE = "234"


def normalize_phone(phone: str) -> str:
    """Return ``+234XXXXXXXXXX`` for local (0803...) or international spellings"""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = COUNTRY_CODE + digits[1:]
    elif not digits.startswith(COUNTRY_CODE):
        digits = COUNTRY_CODE + digits
    return f"+{digits}"
