# Developed in Jan 2026, author carlos.netto@gmail.com.
# Purpose: Manual test client for payment_server.py.

import argparse
import requests
import json
import os

PORT = 5010
HOST = "127.0.0.1"
BASE_URL = f"http://{HOST}:{PORT}"
# The server holds the subscribe request for up to its confirmation timeout
SUBSCRIBE_TIMEOUT = 90


def load_json(path):
    if not os.path.exists(path):
        print(f"PAYMENT_CLIENT: [!] Error: Input file '{path}' not found.")
        return None
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"PAYMENT_CLIENT: [!] Error decoding JSON from '{path}': {e}")
        return None


def post_and_print(url, data, timeout=30):
    """Posts `data` and prints the response. Returns the decoded JSON (or None)."""
    print(f"PAYMENT_CLIENT: [*] Sending POST request to {url}")
    try:
        response = requests.post(url, json=data, timeout=timeout)
    except requests.exceptions.ConnectionError:
        print(f"PAYMENT_CLIENT: [!] Error: Could not connect to {url}. Is payment_server.py running?")
        return None
    except requests.RequestException as e:
        print(f"PAYMENT_CLIENT: [!] Error during request: {e}")
        return None

    print(f"PAYMENT_CLIENT: [*] Status Code: {response.status_code}")
    try:
        resp_json = response.json()
    except ValueError:
        print("PAYMENT_CLIENT: [*] Response Body (Text):")
        print(response.text)
        return None
    print("PAYMENT_CLIENT: [*] Response Body:")
    print(json.dumps(resp_json, indent=4))
    return resp_json


def test_init(path, base_url=BASE_URL):
    data = load_json(path)
    if data is None:
        return None
    return post_and_print(f"{base_url}/api/instant-payment/init", data)


def test_subscribe(path, base_url=BASE_URL):
    data = load_json(path)
    if data is None:
        return None
    return post_and_print(f"{base_url}/api/instant-payment/subscribe", data, timeout=SUBSCRIBE_TIMEOUT)


def run_checkout(path, base_url=BASE_URL):
    """Init, then wait for the confirmation of the returned transaction."""
    init = test_init(path, base_url)
    if not init or not init.get("success"):
        return None
    certificate_data = init.get("certificateData")
    if not certificate_data:
        print("PAYMENT_CLIENT: [!] Certificate carries no VATSK/POKLADNICA; confirmation not available.")
        return None
    payload = {"transactionId": init["transactionId"], **certificate_data}
    print(f"PAYMENT_CLIENT: [*] Pay {init['paymentLink']} now, waiting for confirmation...")
    return post_and_print(f"{base_url}/api/instant-payment/subscribe", payload, timeout=SUBSCRIBE_TIMEOUT)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Test utility for the Instant Payment Server")
    parser.add_argument("--init", help="Path to JSON file with {amount, iban, creditorName, message?}")
    parser.add_argument("--subscribe", help="Path to JSON file with {transactionId, tenantId, terminalId}")
    parser.add_argument("--checkout", help="Path to init JSON; runs init and then waits for the confirmation")
    parser.add_argument("--base-url", default=BASE_URL, help="Server base URL")

    args = parser.parse_args()

    if args.init:
        test_init(args.init, args.base_url)
    elif args.subscribe:
        test_subscribe(args.subscribe, args.base_url)
    elif args.checkout:
        run_checkout(args.checkout, args.base_url)
    else:
        parser.print_help()
