import re

SENTINEL_VALUES = {
    "not provided", "n/a", "na", "unknown", "none", "tbd",
    "undefined", "null", "{{name}}", "{{email}}",
}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[\d\s\-().]{7,20}$")


def validate_name(value: str | None) -> str:
    if not value:
        return ""
    cleaned = " ".join(value.split())
    if cleaned.lower() in SENTINEL_VALUES:
        return ""
    # Reject phone numbers used as names
    if re.match(r"^[\d+\-() ]{7,}$", cleaned):
        return ""
    # Reject template variables
    if "{{" in cleaned or "}}" in cleaned:
        return ""
    return cleaned


def validate_email(value: str | None) -> str:
    if not value:
        return ""
    cleaned = value.strip()
    if cleaned.lower() in SENTINEL_VALUES:
        return ""
    if not _EMAIL_RE.match(cleaned):
        return ""
    return cleaned


def validate_phone(value: str | None) -> str:
    if not value:
        return ""
    cleaned = value.strip()
    if not _PHONE_RE.match(cleaned):
        return ""
    # At least 7 actual digits
    if len(re.sub(r"\D", "", cleaned)) < 7:
        return ""
    return cleaned


def parse_bill_amount(value) -> int | None:
    """Parse a manually entered monthly bill. Returns None unless positive."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        amount = int(value)
        return amount if amount > 0 and amount == value else None
    cleaned = re.sub(r"[€,\s]", "", str(value))
    if not re.match(r"^\d+$", cleaned):
        return None
    amount = int(cleaned)
    return amount if amount > 0 else None
