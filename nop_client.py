# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: NOP API client that hands out transaction ids (EndToEndId) over mTLS.

from dataclasses import dataclass

import jsonschema
import requests

from certificate_utils import ClientCredentials, credential_files
from errors import TransactionIdError
from schema_validation import validate_against_schema

# --- CONFIGURATION ---
NOP_API_HOST = "api-erp.kverkom.sk"
TRANSACTION_ID_PATH = "/api/v1/generateNewTransactionId"
REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class TransactionIdResponse:
    transaction_id: str
    created_at: str


class NOPClient:
    def __init__(self, credentials, api_host=NOP_API_HOST, timeout=REQUEST_TIMEOUT):
        self.credentials = credentials
        self.api_host = api_host
        self.timeout = timeout

    @property
    def url(self):
        return f"https://{self.api_host}{TRANSACTION_ID_PATH}"

    def generate_new_transaction_id(self):
        """
        Generates a new transaction id from the NOP API.
        Endpoint: POST https://api-erp.kverkom.sk/api/v1/generateNewTransactionId

        One attempt only: any failure raises TransactionIdError.
        """
        print(f"NOP_CLIENT: [*] Requesting transaction id from {self.url}")
        try:
            with credential_files(self.credentials) as (cert_path, key_path, ca_path):
                resp = requests.post(
                    self.url,
                    cert=(cert_path, key_path),
                    verify=ca_path,
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            print(f"NOP_CLIENT: [!] Request failed: {e}")
            raise TransactionIdError(f"Request to {self.url} failed: {e}") from e

        print(f"NOP_CLIENT: [*] Upstream Response: {resp.status_code}")
        if resp.status_code != 200:
            raise TransactionIdError(f"HTTP {resp.status_code}: {resp.text}", status_code=resp.status_code)

        try:
            data = resp.json()
            validate_against_schema(data, "TransactionIdResponse")
        except (ValueError, jsonschema.ValidationError) as e:
            raise TransactionIdError(f"Failed to parse response: {e}", status_code=resp.status_code) from e

        print(f"NOP_CLIENT: [OK] Generated transaction id: {data['transaction_id']}")
        return TransactionIdResponse(transaction_id=data["transaction_id"], created_at=data["created_at"])


def create_nop_client(credentials=None):
    """Creates a NOP client; credentials default to the KVERKOM_* environment variables."""
    if credentials is None:
        credentials = ClientCredentials.from_env()
    return NOPClient(credentials)
