import asyncio

from reply_tracker.core.delivery import DeliveryResult, guarded_delivery


async def test_passes_result_through():
    async def send():
        return DeliveryResult.success("id-1")

    result = await guarded_delivery(send, operation="test")
    assert result == DeliveryResult(ok=True, message_id="id-1")


async def test_exception_becomes_failure():
    async def send():
        raise OSError("network unreachable")

    result = await guarded_delivery(send, operation="test")
    assert not result.ok
    assert result.error == "OSError: network unreachable"


async def test_timeout_becomes_failure():
    async def send():
        await asyncio.sleep(10)
        return DeliveryResult.success()

    result = await guarded_delivery(send, operation="test", timeout=0.01)
    assert not result.ok
    assert "timed out" in result.error
