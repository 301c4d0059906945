"""
Spacing between consecutive LLM calls.

Stages and the consistency gate both issue one call per node; the pacer keeps
them under provider rate limits.
"""
import asyncio


async def inter_call_delay(seconds: float) -> None:
    """
    Pause between consecutive semantic transform calls.

    Cancellation while waiting propagates, which aborts the rest of the batch.
    """
    if seconds and seconds > 0:
        await asyncio.sleep(seconds)


class CallPacer:
    """Inserts the inter-call delay before every call except the first."""

    def __init__(self, delay: float):
        self.delay = delay
        self.calls = 0

    async def wait(self) -> None:
        if self.calls > 0:
            await inter_call_delay(self.delay)
        self.calls += 1
