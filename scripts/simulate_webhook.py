"""
Send a simulated IPG payment notification to a running sandbox.

Usage:
    python scripts/simulate_webhook.py SESSION_ID [--failed] [--shape session|data] [--url URL]
"""
import argparse
import asyncio
import json

import httpx

from shipsync.config import settings


def build_payload(session_id: str, success: bool, shape: str) -> dict:
    result = "SUCCESS" if success else "FAILURE"
    if shape == "session":
        return {"session": {"id": session_id}, "result": result}
    if shape == "data":
        return {"data": {"session": {"id": session_id}}, "transaction": {"status": result}}
    return {"sessionId": session_id, "result": result}


async def send_webhook(url: str, session_id: str, success: bool, shape: str) -> None:
    payload = build_payload(session_id, success, shape)
    print(f"POST {url}")
    print(json.dumps(payload, indent=2))

    async with httpx.AsyncClient(timeout=60.0) as client:
        response = await client.post(
            url,
            json=payload,
            headers={"x-notification-secret": settings.ipg_webhook_secret},
        )

    print(f"Status: {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate an IPG payment webhook")
    parser.add_argument("session_id")
    parser.add_argument("--failed", action="store_true", help="report a failed payment")
    parser.add_argument("--shape", choices=["flat", "session", "data"], default="flat")
    parser.add_argument("--url", default=f"{settings.base_url}/api/ipg/webhook")
    args = parser.parse_args()

    if not settings.ipg_webhook_secret:
        print("WARNING: IPG_WEBHOOK_SECRET is not set; the sandbox will reject this call")

    asyncio.run(send_webhook(args.url, args.session_id, not args.failed, args.shape))
