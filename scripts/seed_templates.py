"""Seed sample notification templates and send a demo notification.

Creates (idempotent):
  1. Template payment-success-sms (en/az/ru)
  2. Template welcome-push (en/az/ru)
  3. Optionally, one notification for --user so a live subscriber sees it

Requires a running NotifyHub server:
    notifyhub-server --local --port 8080

Usage:
    python scripts/seed_templates.py [--api-url http://localhost:8080/api/v1] [--user user-1]
"""

import argparse
import sys

import httpx

TEMPLATES = [
    {
        "id": "payment-success-sms",
        "name": "Payment Success SMS",
        "channel": "SMS",
        "params": [
            {"key": "amount", "type": "string", "required": True, "description": "Payment amount"},
            {"key": "transactionId", "type": "string", "required": True, "description": "Transaction ID"},
        ],
        "translations": {
            "en": {
                "subject": "Payment Successful",
                "body": "Payment of ${amount} was successful. Transaction ID: ${transactionId}",
            },
            "az": {
                "subject": "Ödəniş Uğurlu",
                "body": "${amount} məbləğində ödəniş uğurla həyata keçirildi. Tranzaksiya ID: ${transactionId}",
            },
            "ru": {
                "subject": "Платёж успешен",
                "body": "Платёж на сумму ${amount} был успешно выполнен. ID транзакции: ${transactionId}",
            },
        },
        "createdBy": "system",
    },
    {
        "id": "welcome-push",
        "name": "Welcome Push",
        "channel": "PUSH",
        "params": [
            {"key": "name", "type": "string", "required": True, "description": "Customer first name"},
        ],
        "translations": {
            "en": {"subject": "Welcome", "body": "Welcome aboard, ${name}!"},
            "az": {"subject": "Xoş gəlmisiniz", "body": "Xoş gəlmisiniz, ${name}!"},
            "ru": {"subject": "Добро пожаловать", "body": "Добро пожаловать, ${name}!"},
        },
        "createdBy": "system",
    },
]


def main(api_url: str, user_id: str | None) -> None:
    client = httpx.Client(base_url=api_url, timeout=15.0)

    print(f"NotifyHub API: {api_url}")
    print()

    for i, template in enumerate(TEMPLATES, start=1):
        template_id = template["id"]
        print(f"{i}. Ensuring template {template_id} exists...")
        r = client.get(f"/templates/{template_id}")
        if r.status_code == 200:
            r = client.put(f"/templates/{template_id}", json=template)
            action = "Updated"
        else:
            r = client.post("/templates", json=template)
            action = "Created"
        if r.status_code not in (200, 201):
            print(f"   ERROR: {r.status_code} {r.text}", file=sys.stderr)
            sys.exit(1)
        print(f"   -> {action}: {template_id}")

    if user_id:
        print()
        print(f"{len(TEMPLATES) + 1}. Sending a demo payment notification to {user_id}...")
        r = client.post(
            "/notifications/send",
            json={
                "templateId": "payment-success-sms",
                "userId": user_id,
                "channel": "SMS",
                "priority": "HIGH",
                "sourceSystem": "seed_templates",
                "params": {"amount": "25.00 AZN", "transactionId": "txn_demo_001"},
            },
        )
        if r.status_code != 202:
            print(f"   ERROR: {r.status_code} {r.text}", file=sys.stderr)
            sys.exit(1)
        print(f"   -> Accepted: {r.json().get('notification_id')}")
        print(f"   Watch it with: curl -N {api_url}/notifications/subscribe/{user_id}")

    print()
    print("Templates seeded successfully")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed sample templates in NotifyHub")
    parser.add_argument(
        "--api-url",
        default="http://localhost:8080/api/v1",
        help="NotifyHub API base URL (default: http://localhost:8080/api/v1)",
    )
    parser.add_argument("--user", default=None, help="Also send a demo notification to this user id")
    args = parser.parse_args()
    main(args.api_url, args.user)
