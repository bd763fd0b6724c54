# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: HTTP API for the checkout page: initiate an instant payment and
# wait for its confirmation.

import os
import argparse
from flask import Flask, request, jsonify
from flask_cors import CORS

from errors import (
    CertificateParseError,
    ConfigurationError,
    TransactionIdError,
    ValidationError,
)
from instant_payment import confirm_payment, initiate_payment
from mqtt_subscriber import DEFAULT_TIMEOUT

app = Flask(__name__)
CORS(app)

# --- CONFIGURATION ---
PORT = 5010
TIMEOUT_ENV = "INSTANT_PAYMENT_TIMEOUT"
CONFIG_HINT = "Please set KVERKOM_CLIENT_CERT, KVERKOM_CLIENT_KEY, and KVERKOM_CA_BUNDLE environment variables."


def parse_timeout(value, source=TIMEOUT_ENV):
    """Confirmation timeout in whole seconds; None falls back to the default."""
    if value is None:
        return DEFAULT_TIMEOUT
    try:
        seconds = int(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"{source} must be a whole number of seconds, got {value!r}") from e
    if seconds <= 0:
        raise ConfigurationError(f"{source} must be positive, got {value!r}")
    return seconds


def timeout_argument(value):
    try:
        return parse_timeout(value, source="--timeout")
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(e.message)


CONFIRMATION_TIMEOUT = parse_timeout(os.environ.get(TIMEOUT_ENV))


def error_body(error, exc, **extra):
    body = {"error": error, "kind": exc.kind, "message": exc.message}
    body.update(extra)
    return jsonify(body)


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@app.route('/api/instant-payment/init', methods=['POST'])
def init_instant_payment():
    """
    Receives {amount, iban, creditorName, message?}, generates the transaction id
    and Payment Link, and returns the link plus a QR code for desktop browsers.
    """
    data = request.get_json(silent=True)
    print("PAYMENT_SERVER: [*] Received instant payment init request")

    try:
        return jsonify(initiate_payment(data, request.headers.get("User-Agent", "")))
    except ValidationError as e:
        print(f"PAYMENT_SERVER: [!] Invalid request: {e}")
        return error_body("Missing required fields: amount, iban, creditorName", e), 400
    except (ConfigurationError, CertificateParseError) as e:
        print(f"PAYMENT_SERVER: [!] Certificate configuration error: {e}")
        return error_body("Certificate configuration error", e, hint=CONFIG_HINT), 500
    except TransactionIdError as e:
        print(f"PAYMENT_SERVER: [!] Transaction id generation failed: {e}")
        return error_body("Failed to initialize instant payment", e, upstreamStatus=e.status_code), 502


@app.route('/api/instant-payment/subscribe', methods=['POST'])
def subscribe_instant_payment():
    """
    Receives {transactionId, tenantId, terminalId}, subscribes to the payment
    notification topic and blocks until the notification arrives or the
    confirmation timeout expires.
    """
    data = request.get_json(silent=True)
    print("PAYMENT_SERVER: [*] MQTT subscribe route called")

    try:
        body, status = confirm_payment(data, timeout=CONFIRMATION_TIMEOUT)
    except ValidationError as e:
        print(f"PAYMENT_SERVER: [!] {e}")
        return error_body(
            "Missing required parameters" if e.kind == "missing_identity" else "Invalid parameters", e,
            hint="Certificate must contain VATSK-XXXXXXXXXX and POKLADNICA-XXXXXXXXXXXXXX in CN field",
        ), 400
    except ConfigurationError as e:
        print(f"PAYMENT_SERVER: [!] Certificate loading failed: {e}")
        return error_body("Certificate configuration error", e, hint=CONFIG_HINT), 500

    return jsonify(body), status


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Instant Payment Server")
    parser.add_argument("--port", type=int, default=PORT, help="Port to listen on.")
    parser.add_argument("--timeout", type=timeout_argument, default=CONFIRMATION_TIMEOUT,
                        help="Seconds to wait for the payment notification.")
    args = parser.parse_args()
    CONFIRMATION_TIMEOUT = args.timeout

    print(f"PAYMENT_SERVER: Starting Instant Payment Server on port {args.port}...")
    # threaded: every confirmation request holds a worker for up to the timeout
    app.run(host='127.0.0.1', port=args.port, threaded=True)
