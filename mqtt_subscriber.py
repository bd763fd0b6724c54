# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Subscribe to the KVERKOM MQTT broker and wait for the payment
# notification of one transaction.

import json
import re
import ssl
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import paho.mqtt.client as mqtt

from certificate_utils import credential_files
from errors import ConfigurationError, MissingIdentityError, ValidationError

# --- CONFIGURATION ---
MQTT_BROKER = "mqtt.kverkom.sk"
MQTT_PORT = 8883
TENANT_PREFIX = "VATSK"
TERMINAL_PREFIX = "POKLADNICA"
DEFAULT_TIMEOUT = 60
KEEPALIVE = 60
CONNECT_TIMEOUT = 30
SUBSCRIBE_QOS = 1
DIGITS_PATTERN = re.compile(r"\d+")
TOPIC_RESERVED = ("#", "+", "/")


class State(str, Enum):
    CONNECTING = "CONNECTING"
    SUBSCRIBING = "SUBSCRIBING"
    LISTENING = "LISTENING"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    SUBSCRIBE_FAILED = "SUBSCRIBE_FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Completed:
    message: str
    elapsed_seconds: float
    payment_data: Any = None


@dataclass(frozen=True)
class TimedOut:
    elapsed_seconds: float


@dataclass(frozen=True)
class Failed:
    reason: str
    state: State


@dataclass
class ConfirmationResult:
    outcome: Any
    messages: list = field(default_factory=list)
    communication_log: list = field(default_factory=list)


class OneShot:
    """Single-assignment cell: the first set() wins, later ones are discarded."""

    def __init__(self):
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._value = None

    def set(self, value):
        with self._lock:
            if self._done.is_set():
                return False
            self._value = value
            self._done.set()
            return True

    def is_set(self):
        return self._done.is_set()

    def wait(self, timeout=None):
        return self._done.wait(timeout)

    @property
    def value(self):
        return self._value


class CommunicationLog:
    """Timestamped narration of one subscription attempt, also echoed to stdout."""

    def __init__(self, prefix="MQTT_SUBSCRIBER"):
        self._prefix = prefix
        self._lock = threading.Lock()
        self._entries = []

    def append(self, event):
        stamp = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        with self._lock:
            self._entries.append(f"[{stamp}] {event}")
        print(f"{self._prefix}: {event}")

    def entries(self):
        with self._lock:
            return list(self._entries)


def build_topic(tenant_id, terminal_id, transaction_id):
    return f"{TENANT_PREFIX}-{tenant_id}/{TERMINAL_PREFIX}-{terminal_id}/{transaction_id}"


def require_identity(transaction_id, tenant_id, terminal_id):
    missing = [name for name, value in (
        ("transactionId", transaction_id),
        ("tenantId", tenant_id),
        ("terminalId", terminal_id),
    ) if not value]
    if missing:
        raise MissingIdentityError(f"Missing required parameters: {', '.join(missing)}")
    # Each value fills exactly one topic level; wildcards would widen the subscription
    for name, value in (("tenantId", tenant_id), ("terminalId", terminal_id)):
        if not DIGITS_PATTERN.fullmatch(str(value)):
            raise ValidationError(f"{name} must contain digits only: {value!r}")
    if any(char in str(transaction_id) for char in TOPIC_RESERVED):
        raise ValidationError(f"transactionId must not contain '#', '+' or '/': {transaction_id!r}")


def create_mqtt_client(connect_timeout=CONNECT_TIMEOUT):
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=f"checkout-{uuid.uuid4().hex[:16]}",
        protocol=mqtt.MQTTv311,
        reconnect_on_failure=False,
    )
    client.connect_timeout = connect_timeout
    return client


class ConfirmationAttempt:
    """
    One wait for one transaction. Owns its MQTT client and deadline.

    Every terminal event (message, deadline, transport error, cancel) goes
    through _resolve(); the OneShot cell keeps only the first one.
    """

    def __init__(self, credentials, tenant_id, terminal_id, transaction_id,
                 broker=MQTT_BROKER, port=MQTT_PORT, timeout=DEFAULT_TIMEOUT,
                 client_factory=create_mqtt_client):
        require_identity(transaction_id, tenant_id, terminal_id)
        self.credentials = credentials
        self.topic = build_topic(tenant_id, terminal_id, transaction_id)
        self.broker = broker
        self.port = port
        self.timeout = timeout
        self.client_factory = client_factory
        self.log = CommunicationLog()
        self.messages = []
        self._messages_lock = threading.Lock()
        # reentrant: on_message holds it across append and _resolve
        self._state_lock = threading.RLock()
        self._state = State.CONNECTING
        self._result = OneShot()
        self._started_at = None

    @property
    def state(self):
        with self._state_lock:
            return self._state

    def elapsed(self):
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def _advance(self, state):
        with self._state_lock:
            if self._result.is_set():
                return False
            self._state = state
            return True

    def _resolve(self, state, outcome):
        with self._state_lock:
            won = self._result.set(outcome)
            if won:
                self._state = state
        if not won:
            self.log.append(f"Ignoring {state.value}: already resolved as {self.state.value}")
        return won

    def cancel(self, reason="Cancelled by caller"):
        if self._resolve(State.CANCELLED, Failed(reason=reason, state=State.CANCELLED)):
            self.log.append(f"Cancelled: {reason}")

    # --- MQTT callbacks (network thread) ---

    def on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            self.log.append(f"Broker refused connection: {reason_code}")
            self._resolve(State.CONNECTION_FAILED, Failed(
                reason=f"Broker refused connection: {reason_code}", state=State.CONNECTION_FAILED))
            return

        self.log.append("Connected to MQTT broker")
        if not self._advance(State.SUBSCRIBING):
            return
        result, _mid = client.subscribe(self.topic, qos=SUBSCRIBE_QOS)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self.log.append(f"Subscription error: {mqtt.error_string(result)}")
            self._resolve(State.SUBSCRIBE_FAILED, Failed(
                reason=f"Subscribe call failed: {mqtt.error_string(result)}", state=State.SUBSCRIBE_FAILED))

    def on_connect_fail(self, client, userdata):
        self.log.append(f"Could not connect to {self.broker}:{self.port}")
        self._resolve(State.CONNECTION_FAILED, Failed(
            reason=f"Could not connect to {self.broker}:{self.port}", state=State.CONNECTION_FAILED))

    def on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        rejected = [rc for rc in reason_code_list if rc.is_failure]
        if rejected:
            self.log.append(f"Subscription error: {rejected[0]}")
            self._resolve(State.SUBSCRIBE_FAILED, Failed(
                reason=f"Broker rejected subscription: {rejected[0]}", state=State.SUBSCRIBE_FAILED))
            return
        if self._advance(State.LISTENING):
            self.log.append(f"Subscribed to topic with QoS {reason_code_list[0].value}")
            self.log.append("Listening for payment notifications...")

    def on_message(self, client, userdata, msg):
        payload = msg.payload.decode("utf-8", errors="replace")
        with self._state_lock:
            # a message that loses to the deadline is neither recorded nor returned
            if self._result.is_set():
                self.log.append(f"Late notification on {msg.topic} ignored")
                return

            with self._messages_lock:
                self.messages.append(payload)
            elapsed = self.elapsed()
            self.log.append(f"Payment notification received: {payload}")

            payment_data = None
            try:
                payment_data = json.loads(payload)
            except ValueError:
                self.log.append("Could not parse payment notification JSON")

            self._resolve(State.COMPLETED, Completed(message=payload, elapsed_seconds=elapsed, payment_data=payment_data))
            self.log.append(f"Returning response after {round(elapsed)} seconds")

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self.log.append(f"Connection closed ({reason_code})")
        if reason_code.is_failure:
            self._resolve(State.CONNECTION_FAILED, Failed(
                reason=f"Connection lost: {reason_code}", state=State.CONNECTION_FAILED))

    # --- driver (calling thread) ---

    def _configure(self, client):
        client.on_connect = self.on_connect
        client.on_connect_fail = self.on_connect_fail
        client.on_subscribe = self.on_subscribe
        client.on_message = self.on_message
        client.on_disconnect = self.on_disconnect
        try:
            # tls_set loads the files into its SSLContext right away
            with credential_files(self.credentials) as (cert_path, key_path, ca_path):
                client.tls_set(
                    ca_certs=ca_path,
                    certfile=cert_path,
                    keyfile=key_path,
                    cert_reqs=ssl.CERT_REQUIRED,
                )
        except (ssl.SSLError, ValueError) as e:
            raise ConfigurationError(f"Unusable certificate material for MQTT: {e}") from e
        client.tls_insecure_set(False)

    def run(self):
        self._started_at = time.monotonic()
        deadline = self._started_at + self.timeout
        self.log.append(f"Initiating MQTT connection to {self.broker}:{self.port}")
        self.log.append("Using MQTT over TLS (mqtts://) with client certificates")
        self.log.append(f"Subscribing to topic: {self.topic}")
        self.log.append(f"Timeout: {self.timeout} seconds")

        client = self.client_factory(connect_timeout=min(CONNECT_TIMEOUT, self.timeout))
        try:
            self._configure(client)
            client.connect_async(self.broker, self.port, keepalive=KEEPALIVE)
            client.loop_start()

            if not self._result.wait(max(deadline - time.monotonic(), 0)):
                elapsed = self.elapsed()
                if self._resolve(State.TIMED_OUT, TimedOut(elapsed_seconds=elapsed)):
                    self.log.append(f"Timeout reached after {self.timeout} seconds")
                    self.log.append(f"Total messages received: {len(self.messages)}")
        finally:
            self._release(client, deadline)

        with self._messages_lock:
            messages = list(self.messages)
        return ConfirmationResult(
            outcome=self._result.value,
            messages=messages,
            communication_log=self.log.entries(),
        )

    def _release(self, client, deadline):
        # A missing outcome here means run() is unwinding an exception
        if not self._result.is_set():
            self._resolve(State.CONNECTION_FAILED, Failed(
                reason="Attempt aborted before resolution", state=State.CONNECTION_FAILED))
        try:
            client.disconnect()
        finally:
            # loop_stop joins the network thread, which may sit in a TLS
            # handshake; never wait for it past the deadline.
            stopper = threading.Thread(target=client.loop_stop, name="mqtt-teardown", daemon=True)
            stopper.start()
            stopper.join(max(deadline - time.monotonic(), 0))


class ConfirmationSubscriber:
    def __init__(self, credentials, broker=MQTT_BROKER, port=MQTT_PORT, timeout=DEFAULT_TIMEOUT,
                 client_factory=create_mqtt_client):
        self.credentials = credentials
        self.broker = broker
        self.port = port
        self.timeout = timeout
        self.client_factory = client_factory

    def attempt(self, tenant_id, terminal_id, transaction_id):
        return ConfirmationAttempt(
            self.credentials, tenant_id, terminal_id, transaction_id,
            broker=self.broker, port=self.port, timeout=self.timeout,
            client_factory=self.client_factory,
        )

    def wait_for_confirmation(self, tenant_id, terminal_id, transaction_id):
        """Blocks until the payment notification arrives or the timeout expires."""
        return self.attempt(tenant_id, terminal_id, transaction_id).run()
