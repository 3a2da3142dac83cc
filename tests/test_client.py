import aiohttp
import pytest
from aioresponses import aioresponses

from async_code_mailer.client import CodeMailerClient

BASE = "http://mailer.local:3000"


@pytest.mark.asyncio
async def test_send_code_returns_status_and_body():
    with aioresponses() as m:
        m.post(f"{BASE}/send-code", status=202, payload={"ok": False, "message": "Queued for retry"})
        async with CodeMailerClient(BASE + "/") as client:
            status, body = await client.send_code("user@example.com", "Ann", "123456")

    assert status == 202
    assert body == {"ok": False, "message": "Queued for retry"}


@pytest.mark.asyncio
async def test_rate_limited_is_not_raised():
    with aioresponses() as m:
        m.post(f"{BASE}/send-code", status=429, payload={"ok": False, "message": "Too many requests. Try later."})
        async with CodeMailerClient(BASE) as client:
            status, _ = await client.send_code("user@example.com", "Ann", "1")
    assert status == 429


@pytest.mark.asyncio
async def test_admin_calls_decode_json():
    with aioresponses() as m:
        m.get(f"{BASE}/status", payload={"ok": True, "simulated": False, "queue_size": 2, "worker_running": True})
        m.get(f"{BASE}/queue", payload={"ok": True, "items": []})
        m.post(f"{BASE}/commands/run-now", payload={"ok": True, "outcome": "idle"})
        async with CodeMailerClient(BASE) as client:
            assert (await client.status())["queue_size"] == 2
            assert (await client.queue())["items"] == []
            assert (await client.run_now())["outcome"] == "idle"


@pytest.mark.asyncio
async def test_admin_errors_raise():
    with aioresponses() as m:
        m.get(f"{BASE}/status", status=500)
        async with CodeMailerClient(BASE) as client:
            with pytest.raises(aiohttp.ClientResponseError):
                await client.status()


@pytest.mark.asyncio
async def test_client_requires_context_manager():
    client = CodeMailerClient(BASE)
    with pytest.raises(RuntimeError):
        await client.status()
