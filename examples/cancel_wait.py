"""
Abort a long wait from outside with a CancellationToken.

The task never leaves RUNNING, so the wait only ends when the token fires.

## Run with
```bash
PYTHONPATH=src python3 examples/cancel_wait.py
```
"""

import asyncio
import logging

from pysyncteams import CancellationToken, OperationCancelledError, WorkflowClient
from pysyncteams.testing import FakeWorkflowService

logging.basicConfig(level=logging.CRITICAL)

API_KEY = "sts_demo"


async def main():
    service = FakeWorkflowService(api_key=API_KEY)
    service.script_workflow("endless", ["PENDING", "RUNNING"])

    async with WorkflowClient(api_key=API_KEY, transport=service.transport()) as client:
        triggered = await client.trigger("endless", {})
        token = CancellationToken()

        wait = asyncio.create_task(
            client.wait_for_completion(
                triggered.task_id, poll_interval_ms=200, cancel_token=token
            )
        )
        await asyncio.sleep(1)
        token.cancel("user navigated away")

        try:
            await wait
        except OperationCancelledError as e:
            print(f"Wait stopped: {e}")

    print(f"Status polls made: {service.calls('/api/v1/status')}")


if __name__ == "__main__":
    asyncio.run(main())
