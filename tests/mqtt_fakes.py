"""Scripted stand-in for the paho MQTT client used by the subscriber tests."""

import threading


class FakeReasonCode:
    def __init__(self, value=0, name="Success", is_failure=False):
        self.value = value
        self.is_failure = is_failure
        self._name = name

    def __str__(self):
        return self._name


SUCCESS = FakeReasonCode()
GRANTED_QOS_1 = FakeReasonCode(1, "Granted QoS 1")
NOT_AUTHORIZED = FakeReasonCode(135, "Not authorized", is_failure=True)
UNSPECIFIED_ERROR = FakeReasonCode(128, "Unspecified error", is_failure=True)


class FakeMessage:
    def __init__(self, topic, payload):
        self.topic = topic
        self.payload = payload.encode("utf-8") if isinstance(payload, str) else payload


class FakeMQTTClient:
    """
    Records calls made by the subscriber. `script(client)` runs on its own
    thread when loop_start() is called, standing in for paho's network loop.
    """

    def __init__(self, script=None, subscribe_result=0, block_loop_stop=None):
        self.script = script
        self.subscribe_result = subscribe_result
        self.block_loop_stop = block_loop_stop
        self.tls_kwargs = None
        self.tls_insecure = None
        self.connected_to = None
        self.subscriptions = []
        self.disconnected = threading.Event()
        self.stopped = threading.Event()
        self.connect_timeout = None
        self._thread = None

    def tls_set(self, **kwargs):
        self.tls_kwargs = kwargs

    def tls_insecure_set(self, value):
        self.tls_insecure = value

    def connect_async(self, host, port, keepalive=60):
        self.connected_to = (host, port, keepalive)

    def loop_start(self):
        if self.script is not None:
            self._thread = threading.Thread(target=self.script, args=(self,), daemon=True)
            self._thread.start()

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))
        return self.subscribe_result, 1

    def disconnect(self):
        self.disconnected.set()
        return 0

    def loop_stop(self):
        if self.block_loop_stop is not None:
            self.block_loop_stop.wait()
        self.stopped.set()
        return 0

    # helpers used by scripts
    def fire_connect(self, reason_code=SUCCESS):
        self.on_connect(self, None, {}, reason_code, None)

    def fire_subscribe(self, reason_code=GRANTED_QOS_1):
        self.on_subscribe(self, None, 1, [reason_code], None)

    def fire_message(self, payload):
        topic = self.subscriptions[-1][0] if self.subscriptions else "unknown"
        self.on_message(self, None, FakeMessage(topic, payload))

    def fire_disconnect(self, reason_code=UNSPECIFIED_ERROR):
        self.on_disconnect(self, None, {}, reason_code, None)


