import time
import subprocess
import uuid
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
SERVER_CMD = [sys.executable, "-m", "uvicorn", "parcel_tracker.app.main:app", "--host", "127.0.0.1", "--port", "8000"]


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def run_verification():
    email = f"persist_{uuid.uuid4().hex[:8]}@test.com"
    password = "securePassword123"

    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = subprocess.Popen(
        SERVER_CMD,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "DB_ECHO": "True"}
    )

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stderr:", server_logs[1].decode())
            raise RuntimeError("Server start failed")

        # 2. Sign up and create a parcel
        print("\n--- [Step 2] Signing Up and Creating Parcel ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/signup", json={
            "email": email,
            "password": password,
            "name": "Persistence Check",
        })
        if resp.status_code != 201:
            raise RuntimeError(f"Sign-up failed: {resp.status_code} {resp.text}")
        headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/parcels", headers=headers, json={
            "title": "Persistence parcel",
            "sender": "Origin",
            "recipient": "Destination",
            "recipient_address": "1 Test Road",
        })
        if resp.status_code != 201:
            raise RuntimeError(f"Parcel creation failed: {resp.status_code} {resp.text}")
        tracking_number = resp.json()["tracking_number"]
        print(f"✅ Parcel created: {tracking_number}")
    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        print("\n--- [Step 5] Signing In (Post-Restart) ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/login", json={"email": email, "password": password})
        if resp.status_code != 200:
            raise RuntimeError(f"Sign-in failed after restart: {resp.status_code} {resp.text}")
        print("✅ Account persisted")
        headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        print("\n--- [Step 6] Tracking Parcel ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/parcels/track/{tracking_number}", headers=headers)
        if resp.status_code != 200:
            raise RuntimeError(f"Parcel lookup failed after restart: {resp.status_code}")
        history = resp.json()["status_history"]
        print(f"✅ Parcel persisted with {len(history)} history entr{'y' if len(history) == 1 else 'ies'}")
    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()
