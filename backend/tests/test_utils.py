import asyncio
import hashlib
import hmac
from base64 import b64encode

import pytest

from subsku.utils.keyed_lock import KeyedLock
from subsku.utils.rate_limiter import RateLimiter
from subsku.utils.shopify_helpers import extract_numeric_id, to_gid, verify_webhook_hmac, weight_to_grams


def sign(body: bytes, secret: str) -> str:
    return b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def test_verify_webhook_hmac():
    body = b'{"id": 1}'

    assert verify_webhook_hmac(body, sign(body, "secret"), "secret")
    assert not verify_webhook_hmac(body, sign(body, "other"), "secret")
    assert not verify_webhook_hmac(body, None, "secret")
    assert not verify_webhook_hmac(body, sign(body, ""), "")


@pytest.mark.parametrize(
    ("weight", "unit", "grams"),
    [
        (2, "kg", 2000.0),
        (150, "g", 150.0),
        (1, "lb", 453.592),
        (2, "OZ", 56.699),
        (1, "stone", None),
        (None, "kg", None),
    ],
)
def test_weight_to_grams(weight, unit, grams):
    assert weight_to_grams(weight, unit) == (pytest.approx(grams) if grams is not None else None)


def test_gid_helpers():
    assert to_gid("Order", 1001) == "gid://shopify/Order/1001"
    assert extract_numeric_id("gid://shopify/LineItem/12345") == 12345
    assert extract_numeric_id(7) == 7
    with pytest.raises(ValueError):
        extract_numeric_id("gid://shopify/Order/")


async def test_rate_limiter_spaces_calls():
    now = 100.0
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        nonlocal now
        sleeps.append(seconds)
        now += seconds

    limiter = RateLimiter(0.5, clock=lambda: now, sleep=fake_sleep)

    await limiter.acquire()
    await limiter.acquire()
    now += 2.0
    await limiter.acquire()

    assert sleeps == [pytest.approx(0.5)]


async def test_keyed_lock_serializes_same_key_only():
    lock = KeyedLock()
    events: list[str] = []

    async def worker(key: str, name: str) -> None:
        async with lock.hold(key):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    await asyncio.gather(worker("A", "a1"), worker("A", "a2"), worker("B", "b1"))

    assert events.index("a1:end") < events.index("a2:start")
    assert events.index("b1:start") < events.index("a1:end")
