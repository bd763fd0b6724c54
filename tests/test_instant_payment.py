"""Tests for payment initiation and confirmation orchestration."""

from datetime import date
from decimal import Decimal

import pytest

from errors import (
    CertificateParseError,
    MissingIdentityError,
    TransactionIdError,
    ValidationError,
)
from instant_payment import confirm_payment, confirmation_response, initiate_payment, parse_amount
from mqtt_subscriber import Completed, ConfirmationResult, Failed, State, TimedOut
from nop_client import TransactionIdResponse
from certificate_utils import ClientCredentials
from keygen import build_client_certificate

DESKTOP = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"
IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"
ORDER = {"amount": "24.90", "iban": "SK78 1100 0000 0029 4427 6572", "creditorName": "efabox, s.r.o."}


class StubNOPClient:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def generate_new_transaction_id(self):
        self.calls += 1
        if self.error:
            raise self.error
        return TransactionIdResponse("E2E-0001", "2026-01-15T10:00:00Z")


class StubSubscriber:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def wait_for_confirmation(self, tenant_id, terminal_id, transaction_id):
        self.calls.append((tenant_id, terminal_id, transaction_id))
        return self.result


def test_desktop_initiation(credentials):
    nop = StubNOPClient()
    body = initiate_payment(dict(ORDER, message="Order 15"), DESKTOP, credentials=credentials,
                            nop_client=nop, today=date(2026, 1, 15))

    assert nop.calls == 1
    assert body["transactionId"] == "E2E-0001"
    assert body["paymentLink"] == (
        "https://payme.sk/?V=1&IBAN=SK7811000000002944276572&AM=24.90&CC=EUR"
        "&CN=efabox%2C+s.r.o.&PI=E2E-0001&MSG=Order+15&DT=20260115"
    )
    assert body["isMobile"] is False
    assert body["platform"] == "other"
    assert body["qrCodeDataUrl"].startswith("data:image/png;base64,")
    assert body["certificateData"] == {"tenantId": "1234567890", "terminalId": "88812345678900001"}


def test_mobile_initiation_has_no_qr(credentials):
    body = initiate_payment(ORDER, IPHONE, credentials=credentials, nop_client=StubNOPClient())

    assert body["isMobile"] is True
    assert body["platform"] == "ios"
    assert body["qrCodeDataUrl"] is None


def test_qr_failure_degrades_to_none(credentials, monkeypatch):
    import instant_payment
    monkeypatch.setattr(instant_payment, "generate_qr_code", lambda link: "")

    body = initiate_payment(ORDER, DESKTOP, credentials=credentials, nop_client=StubNOPClient())

    assert body["qrCodeDataUrl"] is None
    assert body["paymentLink"].startswith("https://payme.sk/?V=1")


def test_certificate_without_identity_still_initiates():
    cert_pem, key_pem, ca_pem = build_client_certificate("Merchant without terminal")
    creds = ClientCredentials(cert=cert_pem, key=key_pem, ca=ca_pem)

    body = initiate_payment(ORDER, DESKTOP, credentials=creds, nop_client=StubNOPClient())

    assert body["certificateData"] is None
    assert body["success"] is True


@pytest.mark.parametrize("payload", [
    None,
    {"iban": "SK78", "creditorName": "Shop"},
    {"amount": "", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "abc", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "-5", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "100000000000000000000000000000", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "1e30", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "1000000000", "iban": "SK78", "creditorName": "Shop"},
    {"amount": "0.001", "iban": "SK78", "creditorName": "Shop"},
    {"amount": 0.004, "iban": "SK78", "creditorName": "Shop"},
    {"amount": "5", "iban": "SK78"},
])
def test_invalid_request_never_reaches_nop(payload, credentials):
    nop = StubNOPClient()
    with pytest.raises(ValidationError):
        initiate_payment(payload, DESKTOP, credentials=credentials, nop_client=nop)
    assert nop.calls == 0


def test_transaction_id_failure_aborts(credentials, monkeypatch):
    import instant_payment
    links = []
    monkeypatch.setattr(instant_payment, "generate_payment_link", lambda **kw: links.append(kw))
    nop = StubNOPClient(error=TransactionIdError("HTTP 500: boom", status_code=500))

    with pytest.raises(TransactionIdError):
        initiate_payment(ORDER, DESKTOP, credentials=credentials, nop_client=nop)
    assert links == []


def test_malformed_certificate_is_surfaced():
    creds = ClientCredentials(cert="-----BEGIN CERTIFICATE-----\nxx\n-----END CERTIFICATE-----\n", key="k", ca="c")
    with pytest.raises(CertificateParseError):
        initiate_payment(ORDER, DESKTOP, credentials=creds, nop_client=StubNOPClient())


def test_confirm_completed_response():
    result = ConfirmationResult(
        outcome=Completed(message='{"paid": true}', elapsed_seconds=12.4, payment_data={"paid": True}),
        messages=['{"paid": true}'],
        communication_log=["[t] Connected to MQTT broker"],
    )
    subscriber = StubSubscriber(result)

    body, status = confirm_payment(
        {"transactionId": "E2E-1", "tenantId": "1234567890", "terminalId": "888"}, subscriber=subscriber)

    assert status == 200
    assert subscriber.calls == [("1234567890", "888", "E2E-1")]
    assert body == {
        "success": True,
        "hasMessages": True,
        "messages": ['{"paid": true}'],
        "messageCount": 1,
        "communicationLog": ["[t] Connected to MQTT broker"],
        "paymentData": {"paid": True},
        "status": "completed",
        "listeningDuration": "12 seconds",
    }


def test_confirm_accepts_legacy_field_names():
    subscriber = StubSubscriber(ConfirmationResult(outcome=TimedOut(elapsed_seconds=60.0)))

    body, status = confirm_payment(
        {"transactionId": "E2E-1", "vatsk": "1234567890", "pokladnica": "888"}, subscriber=subscriber)

    assert status == 200
    assert subscriber.calls == [("1234567890", "888", "E2E-1")]
    assert body["success"] is False
    assert body["status"] == "timeout"
    assert body["hasMessages"] is False
    assert body["listeningDuration"] == "60 seconds"


def test_confirm_missing_identity_never_subscribes():
    subscriber = StubSubscriber(None)
    with pytest.raises(MissingIdentityError):
        confirm_payment({"transactionId": "E2E-1", "tenantId": "1234567890"}, subscriber=subscriber)
    assert subscriber.calls == []


@pytest.mark.parametrize("payload", [
    {"transactionId": "#", "tenantId": "1234567890", "terminalId": "888"},
    {"transactionId": "E2E-1", "tenantId": "+", "terminalId": "1"},
    {"transactionId": "E2E-1", "vatsk": "1234567890", "pokladnica": "88/8"},
    {"transactionId": "E2E/1", "tenantId": "1234567890", "terminalId": "888"},
])
def test_confirm_rejects_topic_wildcards(payload):
    subscriber = StubSubscriber(None)
    with pytest.raises(ValidationError):
        confirm_payment(payload, subscriber=subscriber)
    assert subscriber.calls == []


@pytest.mark.parametrize("raw, expected", [
    ("0.005", "0.005"),
    ("999999999.99", "999999999.99"),
    (12, "12"),
])
def test_parse_amount_accepts_boundaries(raw, expected):
    assert parse_amount(raw) == Decimal(expected)


def test_failed_outcome_maps_to_bad_gateway():
    body, status = confirmation_response(ConfirmationResult(
        outcome=Failed(reason="Broker rejected subscription", state=State.SUBSCRIBE_FAILED)))

    assert status == 502
    assert body["error"] == "MQTT subscription failed"
    assert body["state"] == "SUBSCRIBE_FAILED"
