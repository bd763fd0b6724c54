# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Payment Link generation (Payment Link Standard) and device detection.

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import quote_plus

# --- CONFIGURATION ---
PAYMENT_LINK_BASE = "https://payme.sk/"
PAYMENT_LINK_VERSION = "1"

MOBILE_PATTERN = re.compile(r"android|iphone|ipad|ipod", re.IGNORECASE)
IOS_PATTERN = re.compile(r"iphone|ipad|ipod", re.IGNORECASE)
ANDROID_PATTERN = re.compile(r"android", re.IGNORECASE)
DUE_DATE_PATTERN = re.compile(r"^\d{8}$")


def _form_quote(value):
    # Same output as URLSearchParams: '~' is escaped, '*' is not.
    return quote_plus(value, safe="*").replace("~", "%7E")


def format_amount(amount):
    """Two decimal digits, half-up. Accepts Decimal, int, float or a decimal string."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Amount is not a decimal number: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Amount must be a finite number, got {amount!r}")
    try:
        return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise ValueError(f"Amount is too large to format: {amount!r}") from e


def format_due_date(due_date):
    if isinstance(due_date, date):
        return due_date.strftime("%Y%m%d")
    if isinstance(due_date, str) and DUE_DATE_PATTERN.match(due_date):
        return due_date
    raise ValueError(f"Due date must be a date or YYYYMMDD string, got {due_date!r}")


def generate_payment_link(iban, amount, currency, creditor_name, end_to_end_id, message=None, due_date=None):
    """
    Generates a Payment Link according to Payment Link Standard v1.3.
    Format: https://payme.sk/?V=1&IBAN=...&AM=...&CC=EUR&CN=...&PI=...[&MSG=...][&DT=YYYYMMDD]
    """
    params = [
        ("V", PAYMENT_LINK_VERSION),
        ("IBAN", re.sub(r"\s", "", iban)),
        ("AM", format_amount(amount)),
        ("CC", currency.upper()),
        ("CN", creditor_name),
        ("PI", end_to_end_id),
    ]

    if message:
        params.append(("MSG", message))
    if due_date:
        params.append(("DT", format_due_date(due_date)))

    query = "&".join(f"{key}={_form_quote(value)}" for key, value in params)
    return f"{PAYMENT_LINK_BASE}?{query}"


@dataclass(frozen=True)
class DeviceInfo:
    is_mobile: bool
    platform: str


def is_mobile_device(user_agent):
    return bool(MOBILE_PATTERN.search(user_agent or ""))


def get_mobile_platform(user_agent):
    """Returns "ios", "android" or "other"."""
    ua = user_agent or ""
    if IOS_PATTERN.search(ua):
        return "ios"
    if ANDROID_PATTERN.search(ua):
        return "android"
    return "other"


def classify_device(user_agent):
    return DeviceInfo(is_mobile=is_mobile_device(user_agent), platform=get_mobile_platform(user_agent))
