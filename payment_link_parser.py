# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Parse a Payment Link back into its fields and validate each one.

import argparse
import re
from urllib.parse import urlsplit, parse_qsl

# Payment Link keys and basic validation rules
KEY_INFO = {
    "V": {"desc": "Version", "pattern": r"^1$", "required": True},
    "IBAN": {"desc": "IBAN", "pattern": r"^[A-Z]{2}\d{2}[A-Z0-9]{1,30}$", "required": True},
    "AM": {"desc": "Amount", "pattern": r"^\d+\.\d{2}$", "required": True},
    "CC": {"desc": "Currency", "pattern": r"^[A-Z]{3}$", "required": True},
    "CN": {"desc": "Creditor Name", "min_len": 1, "required": True},
    "PI": {"desc": "Payment Identifier", "min_len": 1, "required": True},
    "MSG": {"desc": "Message"},
    "DT": {"desc": "Due Date", "pattern": r"^\d{8}$"},
}


def validate_field(key, value):
    """Validates the value against the Payment Link constraints."""
    info = KEY_INFO.get(key)
    if not info:
        return True, "N/A"
    if "min_len" in info and len(value) < info["min_len"]:
        return False, f"ERR: Too short (min {info['min_len']})"
    if "pattern" in info and not re.match(info["pattern"], value):
        return False, "ERR: Format mismatch"
    return True, "OK"


def parse_payment_link(link):
    """Returns a list of field dictionaries in the order they appear in the link."""
    query = urlsplit(link).query
    results = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        is_valid, msg = validate_field(key, value)
        results.append({
            "key": key,
            "value": value,
            "description": KEY_INFO.get(key, {}).get("desc", "Unknown Key"),
            "is_valid": is_valid,
            "validation_msg": msg,
        })
    return results


def payment_link_fields(link):
    """Key -> value view of the link; raises ValueError when a required key is missing or invalid."""
    fields = parse_payment_link(link)
    invalid = [f"{f['key']} ({f['validation_msg']})" for f in fields if not f["is_valid"]]
    if invalid:
        raise ValueError(f"Invalid Payment Link fields: {', '.join(invalid)}")
    values = {f["key"]: f["value"] for f in fields}
    missing = [key for key, info in KEY_INFO.items() if info.get("required") and key not in values]
    if missing:
        raise ValueError(f"Payment Link is missing required keys: {', '.join(missing)}")
    return values


def main():
    parser = argparse.ArgumentParser(description="Payment Link parser")
    parser.add_argument("link", help="Payment Link to parse")
    args = parser.parse_args()

    print("=" * 90)
    print("PAYMENT LINK PARSER")
    print("=" * 90)
    print(f"Raw Link: {args.link}\n")

    fields = parse_payment_link(args.link)
    print(f"{'KEY':5} | {'VALID':22} | {'DESCRIPTION':20} | {'VALUE'}")
    print("-" * 90)
    for field in fields:
        status = "[OK]" if field['is_valid'] else f"[{field['validation_msg']}]"
        print(f"{field['key']:5} | {status:22} | {field['description']:20} | {field['value']}")

    present = {f["key"] for f in fields}
    for key, info in KEY_INFO.items():
        if info.get("required") and key not in present:
            print(f"[!] Missing required key {key} ({info['desc']})")
    print("=" * 90)


if __name__ == "__main__":
    main()
