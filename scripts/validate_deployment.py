"""
Pre-Deploy and Smoke Test Script.

Runs against a live server (seeded with reseller_backend/seed_accounts.py):
1. Health Check
2. Settlement Preview as MASTER (read-only)
3. Confirmed Settlement Listing
4. Optional: weekly settlement trigger (--trigger), which writes last week's ledger

Environment:
    BASE_URL      default http://127.0.0.1:8000
    MASTER_ID     account id of the seeded master, default 1
    CRON_SECRET   sent as Bearer token to the trigger when set
"""

import os
import sys
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from reseller_backend.app.core.jwt import create_account_token
from reseller_backend.app.models.enums import AccountRole

BASE_URL = os.environ.get("BASE_URL", "http://127.0.0.1:8000")
MASTER_ID = int(os.environ.get("MASTER_ID", "1"))
CRON_SECRET = os.environ.get("CRON_SECRET")
TIMEOUT = 30


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def main():
    print("🚀 Starting Deployment Validation...")

    # 1. Health Check
    print_step("PRE-DEPLOY", "Checking /health...")
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=TIMEOUT)
    except requests.RequestException as e:
        fail(f"Health check died: {e}")
    if response.status_code != 200:
        fail(f"Health check returned {response.status_code}")
    success(f"Healthy: {response.json()}")

    # 2. Master token (signed with the deployment's SECRET_KEY)
    print_step("AUTH", "Generating MASTER token...")
    token = create_account_token(MASTER_ID, "deploy_bot", AccountRole.MASTER)
    headers = {"Authorization": f"Bearer {token}"}

    # 3. Preview (read-only)
    print_step("VERIFY", "Previewing this week's settlements...")
    res = requests.get(f"{BASE_URL}/v1/settlements/preview", headers=headers, timeout=TIMEOUT)
    if res.status_code != 200:
        fail(f"Preview failed: {res.status_code} {res.text}")
    preview = res.json()
    success(
        f"Preview {preview['period']['start']} ~ {preview['period']['end']}: "
        f"{len(preview['settlements'])} distributors, total {preview['summary']['total_amount']:,}"
    )

    # 4. Listing
    print_step("VERIFY", "Listing confirmed settlements...")
    res = requests.get(f"{BASE_URL}/v1/settlements/confirmed", headers=headers, timeout=TIMEOUT)
    if res.status_code != 200:
        fail(f"Listing failed: {res.status_code} {res.text}")
    success(f"Found {len(res.json()['settlements'])} confirmed settlements")

    # 5. Trigger (opt-in, writes)
    if "--trigger" in sys.argv:
        print_step("SMOKE", "Triggering weekly settlement...")
        trigger_headers = {"Authorization": f"Bearer {CRON_SECRET}"} if CRON_SECRET else {}
        res = requests.get(f"{BASE_URL}/v1/cron/settlement", headers=trigger_headers, timeout=TIMEOUT)
        body = res.json()
        if res.status_code == 200:
            success(f"Confirmed {body['settlements_created']} settlements for {body['period']}")
        elif res.status_code == 409:
            print(f"⚠️ Period {body['period']} already confirmed, ledger unchanged.")
        else:
            fail(f"Trigger failed: {res.status_code} {body}")

    success("Deployment Validation Passed!")


if __name__ == "__main__":
    main()
