"""
Drive a locally running LeadLine instance by hand.

Examples:
    python scripts/simulate_sms.py inbound --body "How much for a quote? Need it today"
    python scripts/simulate_sms.py manual --phone "+15125559999" --body "Hi, this is Dana"
    python scripts/simulate_sms.py takeover --phone "+15125559999"
    python scripts/simulate_sms.py release --phone "+15125559999"
"""
import argparse
import asyncio
import logging

import httpx

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger("simulate_sms")

DEFAULT_BASE_URL = "http://localhost:3000"


async def send_inbound(client: httpx.AsyncClient, args) -> httpx.Response:
    # Same form encoding Twilio uses for its webhook
    return await client.post("/webhook/sms", data={
        "From": args.phone,
        "To": args.line,
        "Body": args.body,
        "MessageSid": "SM" + "0" * 32,
        "NumMedia": "0",
    })


async def send_manual(client: httpx.AsyncClient, args) -> httpx.Response:
    return await client.post("/api/send-message", json={"to": args.phone, "message": args.body})


async def toggle_takeover(client: httpx.AsyncClient, args) -> httpx.Response:
    return await client.post(
        f"/api/customers/{args.phone}/takeover",
        json={"active": args.action == "takeover"},
    )


ACTIONS = {
    "inbound": send_inbound,
    "manual": send_manual,
    "takeover": toggle_takeover,
    "release": toggle_takeover,
}


async def run(args) -> int:
    async with httpx.AsyncClient(base_url=args.base_url, timeout=30) as client:
        response = await ACTIONS[args.action](client, args)
    logger.info("%s -> HTTP %d", args.action, response.status_code)
    logger.info(response.text)
    return 0 if response.is_success else 1


def parse_args():
    parser = argparse.ArgumentParser(description="Send test traffic to LeadLine")
    parser.add_argument("action", choices=sorted(ACTIONS))
    parser.add_argument("--phone", default="+15125559876", help="customer number")
    parser.add_argument("--line", default="+15125550100", help="business line that receives the text")
    parser.add_argument("--body", default="Hi, I'm interested. What's the price?")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    return parser.parse_args()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(run(parse_args())))
