"""Shared fixtures: client credentials and fake MQTT client factories."""

import pytest

from certificate_utils import ClientCredentials
from keygen import build_client_certificate


@pytest.fixture
def credentials():
    cert_pem, key_pem, ca_pem = build_client_certificate("VATSK-1234567890 POKLADNICA-88812345678900001")
    return ClientCredentials(cert=cert_pem, key=key_pem, ca=ca_pem)


@pytest.fixture
def factory_for():
    """Returns a client_factory that hands out the given fake client."""

    def make(fake):
        def client_factory(connect_timeout=30):
            fake.connect_timeout = connect_timeout
            return fake
        return client_factory

    return make
