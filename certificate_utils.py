# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Load the KVERKOM client credentials and read the VATSK/POKLADNICA
# identity out of the client certificate.

import os
import re
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from errors import CertificateParseError, ConfigurationError

# --- CONFIGURATION ---
CERT_ENV = "KVERKOM_CLIENT_CERT"
KEY_ENV = "KVERKOM_CLIENT_KEY"
CA_ENV = "KVERKOM_CA_BUNDLE"

VATSK_PATTERN = re.compile(r"VATSK-(\d+)")
POKLADNICA_PATTERN = re.compile(r"POKLADNICA[\s-]+(\d+)")
DIGITS_PATTERN = re.compile(r"(\d+)")


@dataclass(frozen=True)
class CertificateIdentity:
    tenant_id: str
    terminal_id: str

    def to_dict(self):
        return {"tenantId": self.tenant_id, "terminalId": self.terminal_id}


@dataclass(frozen=True)
class ClientCredentials:
    """PEM text for the mTLS client certificate, its key and the trusted CA bundle."""
    cert: str
    key: str
    ca: str

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ
        values = {name: environ.get(name, "") for name in (CERT_ENV, KEY_ENV, CA_ENV)}
        missing = [name for name, value in values.items() if not value.strip()]
        if missing:
            raise ConfigurationError(
                f"Missing certificate configuration. Please set {', '.join(missing)} environment variable(s)."
            )

        print("CERTIFICATES: [*] Client certificate, key and CA bundle present in environment")
        return cls(
            cert=_normalize_pem(values[CERT_ENV]),
            key=_normalize_pem(values[KEY_ENV]),
            ca=_normalize_pem(values[CA_ENV]),
        )


def _normalize_pem(value):
    # Single-line env vars usually carry escaped newlines.
    if "\\n" in value and "\n" not in value.strip():
        value = value.replace("\\n", "\n")
    return value.strip() + "\n"


@contextmanager
def credential_files(credentials):
    """
    Writes the PEM material to temporary files and yields their paths
    (cert, key, ca). TLS stacks want file paths; the files are removed on exit.
    """
    paths = []
    try:
        for pem, suffix in ((credentials.cert, "_cert.pem"), (credentials.key, "_key.pem"), (credentials.ca, "_ca.pem")):
            with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as tmp:
                tmp.write(pem)
                paths.append(tmp.name)
        yield tuple(paths)
    finally:
        for path in paths:
            if os.path.exists(path):
                os.remove(path)


def _subject_value(name, oid):
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value


def parse_certificate(cert_pem) -> Optional[CertificateIdentity]:
    """
    Parses VATSK and POKLADNICA from the certificate Subject.
    Example CN: "VATSK-1234567890 POKLADNICA 88812345678900001"
    Example OU: "88812345678900001" (used when the CN carries no POKLADNICA)

    Returns None when either value is missing; raises CertificateParseError
    when the PEM itself cannot be loaded.
    """
    data = cert_pem.encode("utf-8") if isinstance(cert_pem, str) else cert_pem
    try:
        cert = x509.load_pem_x509_certificate(data)
    except ValueError as e:
        raise CertificateParseError(f"Could not parse client certificate: {e}") from e

    cn_value = _subject_value(cert.subject, NameOID.COMMON_NAME)
    ou_value = _subject_value(cert.subject, NameOID.ORGANIZATIONAL_UNIT_NAME)

    if cn_value is None:
        print("CERTIFICATES: [!] No CN field found in certificate")
        return None

    vatsk_match = VATSK_PATTERN.search(cn_value)
    pokladnica_match = POKLADNICA_PATTERN.search(cn_value)

    if not pokladnica_match and ou_value:
        pokladnica_match = DIGITS_PATTERN.search(ou_value)
        if pokladnica_match:
            print(f"CERTIFICATES: [*] Found POKLADNICA in OU field: {pokladnica_match.group(1)}")

    if not vatsk_match or not pokladnica_match:
        print(f"CERTIFICATES: [!] VATSK found: {bool(vatsk_match)}, POKLADNICA found: {bool(pokladnica_match)}")
        return None

    return CertificateIdentity(tenant_id=vatsk_match.group(1), terminal_id=pokladnica_match.group(1))


def load_certificate_identity(credentials):
    identity = parse_certificate(credentials.cert)
    if identity is None:
        print("CERTIFICATES: [!] Certificate does not contain VATSK and POKLADNICA. MQTT subscription will not be available.")
    else:
        print(f"CERTIFICATES: [OK] VATSK: {identity.tenant_id}, POKLADNICA: {identity.terminal_id}")
    return identity
