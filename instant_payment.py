# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Instant payment initiation and confirmation, independent of the HTTP layer.

from datetime import date
from decimal import Decimal, InvalidOperation

import jsonschema

from certificate_utils import ClientCredentials, load_certificate_identity
from errors import ValidationError
from mqtt_subscriber import (
    DEFAULT_TIMEOUT,
    Completed,
    ConfirmationSubscriber,
    State,
    TimedOut,
    require_identity,
)
from nop_client import create_nop_client
from payment_link import classify_device, format_amount, generate_payment_link
from qr_generator import generate_qr_code
from schema_validation import validate_against_schema

# --- CONFIGURATION ---
CURRENCY = "EUR"
MAX_AMOUNT = Decimal("999999999.99")


def parse_amount(raw):
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Amount is not a valid number: {raw!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Amount must be a positive number: {raw!r}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}: {raw!r}")
    if Decimal(format_amount(amount)) == 0:
        raise ValidationError(f"Amount rounds to 0.00: {raw!r}")
    return amount


def validate_init_request(payload):
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON")
    try:
        validate_against_schema(payload, "InitRequest")
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Missing or invalid fields (amount, iban, creditorName required): {e.message}") from e
    return parse_amount(payload["amount"])


def initiate_payment(payload, user_agent, credentials=None, nop_client=None, today=None):
    """
    Generates the transaction id, Payment Link and (desktop only) the QR code.
    Raises ValidationError, ConfigurationError, CertificateParseError or
    TransactionIdError; nothing is generated after a failed step.
    """
    amount = validate_init_request(payload)
    print(f"INSTANT_PAYMENT: [*] Initializing instant payment. Amount: {amount} IBAN: {payload['iban']}")

    if credentials is None:
        credentials = ClientCredentials.from_env()
    identity = load_certificate_identity(credentials)

    if nop_client is None:
        nop_client = create_nop_client(credentials)
    transaction_id = nop_client.generate_new_transaction_id().transaction_id

    payment_link = generate_payment_link(
        iban=payload["iban"],
        amount=amount,
        currency=CURRENCY,
        creditor_name=payload["creditorName"],
        end_to_end_id=transaction_id,
        message=payload.get("message"),
        due_date=today or date.today(),
    )
    print(f"INSTANT_PAYMENT: [OK] Payment link generated: {payment_link}")

    device = classify_device(user_agent)
    print(f"INSTANT_PAYMENT: [*] Device detection - isMobile: {device.is_mobile} platform: {device.platform}")

    qr_code_data_url = None
    if not device.is_mobile:
        qr_code_data_url = generate_qr_code(payment_link) or None
        if qr_code_data_url is None:
            print("INSTANT_PAYMENT: [!] QR code unavailable, continuing with the link only")

    return {
        "success": True,
        "transactionId": transaction_id,
        "paymentLink": payment_link,
        "isMobile": device.is_mobile,
        "platform": device.platform,
        "qrCodeDataUrl": qr_code_data_url,
        "certificateData": identity.to_dict() if identity else None,
    }


def confirmation_identity(payload):
    """Reads (transactionId, tenantId, terminalId); vatsk/pokladnica are accepted as aliases."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON")
    try:
        validate_against_schema(payload, "ConfirmationRequest")
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Invalid confirmation request: {e.message}") from e
    transaction_id = payload.get("transactionId")
    tenant_id = payload.get("tenantId") or payload.get("vatsk")
    terminal_id = payload.get("terminalId") or payload.get("pokladnica")
    require_identity(transaction_id, tenant_id, terminal_id)
    return transaction_id, tenant_id, terminal_id


def confirmation_response(result):
    """Maps a ConfirmationResult to (body, HTTP status)."""
    outcome = result.outcome
    common = {
        "hasMessages": len(result.messages) > 0,
        "messages": result.messages,
        "messageCount": len(result.messages),
        "communicationLog": result.communication_log,
    }
    if isinstance(outcome, Completed):
        return dict(
            success=True,
            **common,
            paymentData=outcome.payment_data,
            status="completed",
            listeningDuration=f"{round(outcome.elapsed_seconds)} seconds",
        ), 200
    if isinstance(outcome, TimedOut):
        return dict(
            success=False,
            **common,
            status="timeout",
            listeningDuration=f"{round(outcome.elapsed_seconds)} seconds",
        ), 200
    return {
        "error": "MQTT subscription failed" if outcome.state == State.SUBSCRIBE_FAILED else "MQTT connection failed",
        "details": outcome.reason,
        "state": outcome.state.value,
        "communicationLog": result.communication_log,
    }, 502


def confirm_payment(payload, credentials=None, subscriber=None, timeout=DEFAULT_TIMEOUT):
    """
    Waits (up to `timeout` seconds) for the payment notification.
    Identity is checked before credentials are touched or a connection opened.
    """
    transaction_id, tenant_id, terminal_id = confirmation_identity(payload)

    if subscriber is None:
        if credentials is None:
            credentials = ClientCredentials.from_env()
        subscriber = ConfirmationSubscriber(credentials, timeout=timeout)

    result = subscriber.wait_for_confirmation(tenant_id, terminal_id, transaction_id)
    return confirmation_response(result)
