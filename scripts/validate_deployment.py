"""
Post-Deploy Smoke Test Script.

Runs the main user journey against a running instance:
1. Health Check
2. Sign up -> Create parcel -> Track -> Status update
3. Security report and sign-out
"""

import os
import sys
import uuid
import requests

BASE_URL = os.getenv("PARCEL_TRACKER_URL", "http://127.0.0.1:8000")
API = f"{BASE_URL}/v1"
TIMEOUT = 10


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def expect(response, status_code, what):
    if response.status_code != status_code:
        fail(f"{what}: {response.status_code} {response.text}")
    return response.json() if response.content else None


def main():
    print("🚀 Starting Deployment Validation...")

    # 1. Health Check
    print_step("PRE-DEPLOY", "Checking /health...")
    try:
        health = expect(requests.get(f"{BASE_URL}/health", timeout=TIMEOUT), 200, "Health check")
    except requests.ConnectionError as e:
        fail(f"Health check died: {e}")
    success(f"{health['app_name']} {health['version']} is healthy")

    # 2. Throwaway account
    print_step("AUTH", "Signing up smoke-test account...")
    email = f"smoke_{uuid.uuid4().hex[:8]}@test.com"
    password = "smokePassword123"
    session = expect(
        requests.post(f"{API}/auth/signup", json={"email": email, "password": password, "name": "Smoke Test"}, timeout=TIMEOUT),
        201, "Sign-up",
    )
    headers = {"Authorization": f"Bearer {session['access_token']}"}
    success(f"Signed up {email}")

    # 3. Parcel flow
    print_step("SMOKE", "Running Create -> Track -> Update flow...")
    created = expect(
        requests.post(f"{API}/parcels", headers=headers, timeout=TIMEOUT, json={
            "title": "Smoke parcel",
            "sender": "Deploy bot",
            "recipient": "Ops",
            "recipient_address": "1 Release Street",
        }),
        201, "Parcel creation",
    )
    tracking_number = created["tracking_number"]

    parcel = expect(requests.get(f"{API}/parcels/track/{tracking_number}", headers=headers, timeout=TIMEOUT), 200, "Tracking lookup")
    if parcel["status"] != "pending" or len(parcel["status_history"]) != 1:
        fail(f"New parcel has unexpected state: {parcel['status']} / {parcel['status_history']}")

    updated = expect(
        requests.patch(
            f"{API}/parcels/{parcel['id']}/status",
            headers=headers,
            json={"status": "in-transit", "location": "Smoke hub", "expected_version": parcel["version"]},
            timeout=TIMEOUT,
        ),
        200, "Status update",
    )
    if [entry["status"] for entry in updated["status_history"]] != ["pending", "in-transit"]:
        fail(f"History not appended: {updated['status_history']}")
    success(f"Parcel {tracking_number} moved to in-transit")

    # 4. Security + sign-out
    print_step("VERIFY", "Checking security report and sign-out...")
    report = expect(requests.get(f"{API}/security/report", headers=headers, timeout=TIMEOUT), 200, "Security report")
    success(f"Security report: {report['total_logins']} logins recorded")

    expect(requests.post(f"{API}/auth/logout", headers=headers, timeout=TIMEOUT), 204, "Sign-out")
    if requests.get(f"{API}/auth/me", headers=headers, timeout=TIMEOUT).status_code != 401:
        fail("Token still accepted after sign-out")

    success("Deployment Validation Passed!")


if __name__ == "__main__":
    main()
