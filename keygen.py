# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Generate a local CA and a KVERKOM-style client certificate for
# development and tests. Real certificates are issued by the KVERKOM CA.

import argparse
import os
from datetime import datetime, timedelta, timezone
from cryptography.hazmat.primitives import serialization, hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography import x509
from cryptography.x509.oid import NameOID

OUTPUT_DIR = "certs"


def _private_pem(private_key):
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode("ascii")


def _cert_pem(cert):
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def build_ca(common_name="Local Development CA"):
    """Returns (ca_key, ca_cert) for a self-signed CA."""
    ca_key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    ca_cert = x509.CertificateBuilder().subject_name(
        name
    ).issuer_name(
        name
    ).public_key(
        ca_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now
    ).not_valid_after(
        now + timedelta(days=365)
    ).add_extension(
        x509.BasicConstraints(ca=True, path_length=None), critical=True
    ).sign(ca_key, hashes.SHA256())
    return ca_key, ca_cert


def build_client_certificate(common_name, org_unit=None, ca=None):
    """
    Returns (cert_pem, key_pem, ca_pem) for a client certificate whose Subject
    carries `common_name` (e.g. "VATSK-1234567890 POKLADNICA-88812345678900001")
    and optionally an OU. `common_name=None` leaves the CN out entirely.
    """
    ca_key, ca_cert = ca or build_ca()
    client_key = ec.generate_private_key(ec.SECP256R1())

    attributes = []
    if common_name is not None:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    if org_unit is not None:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, org_unit))
    attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Development Merchant"))

    now = datetime.now(timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        x509.Name(attributes)
    ).issuer_name(
        ca_cert.subject
    ).public_key(
        client_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now
    ).not_valid_after(
        now + timedelta(days=365)
    ).add_extension(
        x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False
    ).sign(ca_key, hashes.SHA256())

    return _cert_pem(cert), _private_pem(client_key), _cert_pem(ca_cert)


def write_client_files(output_dir, cert_pem, key_pem, ca_pem):
    os.makedirs(output_dir, exist_ok=True)
    paths = {}
    for name, content in (("client_cert.pem", cert_pem), ("client_key.pem", key_pem), ("ca_bundle.pem", ca_pem)):
        path = os.path.join(output_dir, name)
        with open(path, "w") as f:
            f.write(content)
        paths[name] = path
    return paths


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate development KVERKOM certificates")
    parser.add_argument("--vatsk", default="1234567890", help="Tenant id placed in the CN as VATSK-<id>")
    parser.add_argument("--pokladnica", default="88812345678900001", help="Terminal id")
    parser.add_argument("--ou", action="store_true", help="Put the terminal id in the OU instead of the CN")
    parser.add_argument("--out", default=OUTPUT_DIR, help="Output directory")
    args = parser.parse_args()

    if args.ou:
        cn, ou = f"VATSK-{args.vatsk}", args.pokladnica
    else:
        cn, ou = f"VATSK-{args.vatsk} POKLADNICA-{args.pokladnica}", None

    print(f"Generating client certificate for CN={cn}" + (f", OU={ou}" if ou else "") + "...")
    paths = write_client_files(args.out, *build_client_certificate(cn, org_unit=ou))
    print(f"Successfully created {', '.join(paths.values())}")
    print("\nExport them before starting payment_server.py:")
    print(f'  export KVERKOM_CLIENT_CERT="$(cat {paths["client_cert.pem"]})"')
    print(f'  export KVERKOM_CLIENT_KEY="$(cat {paths["client_key.pem"]})"')
    print(f'  export KVERKOM_CA_BUNDLE="$(cat {paths["ca_bundle.pem"]})"')
