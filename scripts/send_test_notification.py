"""Send a test push notification through a running worker.

Usage:
    PETLY_WORKER_URL=http://localhost:8000 uv run python scripts/send_test_notification.py <user_id> [type]

type is one of: test (default), nova_mensagem, adocao_confirmada, adocao_recusada

Auth:
    - Local dev (TRIGGERS_OIDC_AUDIENCE=petly-triggers-local): sends
      INTERNAL_TRIGGER_SECRET as X-Internal-Trigger-Secret
    - Otherwise: fetches a Google ID token for TRIGGERS_OIDC_AUDIENCE with the
      ambient credentials (gcloud / service account)
"""

from __future__ import annotations

import os
import sys

import requests
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

LOCAL_DEV_AUDIENCE = "petly-triggers-local"
TEST_TYPES = ("test", "nova_mensagem", "adocao_confirmada", "adocao_recusada")


def _auth_headers() -> dict[str, str]:
    audience = os.environ.get("TRIGGERS_OIDC_AUDIENCE", "")
    if audience == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TRIGGER_SECRET", "")
        if not secret:
            print("ERROR: INTERNAL_TRIGGER_SECRET not set")
            sys.exit(1)
        return {"X-Internal-Trigger-Secret": secret}
    if not audience:
        print("ERROR: TRIGGERS_OIDC_AUDIENCE not set")
        sys.exit(1)
    token = id_token.fetch_id_token(google_requests.Request(), audience)
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: uv run python scripts/send_test_notification.py <user_id> [type]")
        sys.exit(2)

    user_id = sys.argv[1]
    notification_type = sys.argv[2] if len(sys.argv) > 2 else "test"
    if notification_type not in TEST_TYPES:
        print(f"WARNING: unknown type {notification_type!r}, the worker will send 'test'")

    base_url = os.environ.get("PETLY_WORKER_URL", "http://localhost:8000").rstrip("/")

    print(f"Sending {notification_type} notification to user_id={user_id} ...")
    response = requests.post(
        f"{base_url}/notifications/test",
        json={"userId": user_id, "type": notification_type},
        headers=_auth_headers(),
        timeout=30,
    )

    body = response.json() if response.content else {}
    if response.status_code != 200:
        print(f"ERROR: {response.status_code} {body.get('error', response.text)}")
        sys.exit(1)

    print()
    print("=== Notification Sent ===")
    print(f"  messageId: {body.get('messageId')}")
    print(f"  type:      {body.get('type')}")


if __name__ == "__main__":
    main()
