"""
Trigger a workflow and approve it when it pauses.

Runs against the in-memory FakeWorkflowService, so no API key or network
access is needed. Swap the transport for a real key to talk to the service.

## Run with
```bash
PYTHONPATH=src python3 examples/simple_workflow.py
```
"""

import asyncio
import logging

from pysyncteams import TaskStatusResponse, WorkflowClient, WorkflowStatus
from pysyncteams.testing import FakeWorkflowService

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

API_KEY = "sts_demo"


async def main():
    service = FakeWorkflowService(api_key=API_KEY)
    service.script_workflow(
        "report-writer",
        [
            WorkflowStatus.PENDING,
            WorkflowStatus.RUNNING,
            WorkflowStatus.WAITING,
            WorkflowStatus.RUNNING,
            WorkflowStatus.COMPLETED,
        ],
    )

    async with WorkflowClient(api_key=API_KEY, transport=service.transport()) as client:

        def show(record: TaskStatusResponse) -> None:
            print(f"{record.task_id} -> {record.status}")

        async def review(record: TaskStatusResponse) -> bool:
            print(f"{record.task_id} needs approval, approving")
            await client.approve(record.task_id, "Looks good")
            return True

        result = await client.trigger_and_wait(
            "report-writer",
            {"topic": "Quarterly results"},
            unique_id="report-2024-q1",
            on_waiting=review,
            on_update=show,
            poll_interval_ms=100,
        )

    print(f"Finished with {result.status}")
    for entry in result.event_logs or []:
        print(f"  {entry.event_type}: {entry.event_data}")


if __name__ == "__main__":
    asyncio.run(main())
