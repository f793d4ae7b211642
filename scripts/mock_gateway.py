"""
Simulated SISP gateway: posts signed callbacks to a running integration.

    VINTI4_POS_AUTH_CODE=... python scripts/mock_gateway.py

Reads the terminal credentials from the environment (or `.env`) and plays a
handful of callback scenarios against CALLBACK_URL, logging PASS/FAIL per case.
"""

from datetime import datetime
from dotenv import load_dotenv
from vinti4net.services.fingerprint import FingerprintEngine
import asyncio
import httpx
import logging
import os
import uuid

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

CALLBACK_URL = os.getenv("MOCK_CALLBACK_URL", "http://localhost:8001/payments/callback")
POS_AUTH_CODE = os.getenv("VINTI4_POS_AUTH_CODE")

if not POS_AUTH_CODE:
    logger.error("VINTI4_POS_AUTH_CODE not found in environment variables!")
    raise ValueError("VINTI4_POS_AUTH_CODE is required but not set")

engine = FingerprintEngine(POS_AUTH_CODE)


def generate_callback(message_type: str = "8", **overrides) -> dict:
    """A gateway callback for a random approved purchase, signed."""
    now = datetime.now()
    data = {
        "messageType": message_type,
        "merchantRespCP": now.strftime("%Y%m%d"),
        "merchantRespTid": uuid.uuid4().hex[:8].upper(),
        "merchantRespMerchantRef": now.strftime("R%Y%m%d%H%M%S"),
        "merchantRespMerchantSession": now.strftime("S%Y%m%d%H%M%S"),
        "merchantRespPurchaseAmount": str(uuid.uuid4().int % 10000 + 100),
        "merchantRespMessageID": uuid.uuid4().hex[:6].upper(),
        "merchantRespPan": "4242424242424242",
        "merchantResp": "C",
        "merchantRespTimeStamp": now.strftime("%Y-%m-%d %H:%M:%S"),
        "merchantRespReferenceNumber": "",
        "merchantRespEntityCode": "",
        "merchantRespClientReceipt": "",
        "merchantRespAdditionalErrorMessage": "",
        "merchantRespReloadCode": "",
        "merchantRespCurrency": "132",
        "transactionCode": "1",
    }
    data.update(overrides)
    data["resultFingerPrint"] = engine.sign_response(data)
    return data


async def send_callback(client: httpx.AsyncClient, data: dict):
    try:
        return await client.post(CALLBACK_URL, data=data, timeout=10.0)
    except httpx.RequestError as e:
        logger.error(f"Request failed: {str(e)}")
        return None


async def run_test_scenarios():
    forged = generate_callback()
    forged["merchantRespPurchaseAmount"] = "1"

    test_cases = [
        {"name": "Case 1: Approved purchase", "data": generate_callback(), "expected": "SUCCESS"},
        {
            "name": "Case 2: Service payment",
            "data": generate_callback(
                "P", transactionCode="2", merchantRespEntityCode="10001",
                merchantRespReferenceNumber="123456789",
            ),
            "expected": "SUCCESS",
        },
        {"name": "Case 3: Tampered amount", "data": forged, "expected": "INVALID_FINGERPRINT"},
        {"name": "Case 4: User cancelled", "data": {"UserCancelled": "true"}, "expected": "CANCELLED"},
        {
            "name": "Case 5: Declined card",
            "data": generate_callback(
                "6", merchantRespErrorDescription="Card declined",
                merchantRespErrorDetail="Insufficient funds",
            ),
            "expected": "ERROR",
        },
    ]

    async with httpx.AsyncClient() as client:
        for case in test_cases:
            logger.info(f"\n=== {case['name']} ===")
            response = await send_callback(client, case["data"])
            status = response.json().get("status") if response is not None else None

            if status == case["expected"]:
                logger.info("PASS")
            else:
                logger.info("FAIL")
                logger.info(f"Expected status: {case['expected']}, Got: {status}")

            await asyncio.sleep(1)


async def main():
    logger.info("Starting Vinti4Net mock gateway")
    logger.info(f"Target URL: {CALLBACK_URL}")

    try:
        await run_test_scenarios()
        logger.info("\nMock gateway completed successfully")
    except KeyboardInterrupt:
        logger.info("\nMock gateway interrupted")


if __name__ == "__main__":
    asyncio.run(main())
