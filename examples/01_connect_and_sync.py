"""
01_connect_and_sync.py - Connect Google Tasks, pull tasks, complete a recurring one
"""

import asyncio

from tasksync import Recurrence, TaskSyncService, load_settings


async def main():
    service = TaskSyncService(load_settings("config.yaml"))
    await service.initialize()

    url, state = await service.authorization_url("user_1", "google", "http://localhost:8000")
    print(f"Open this URL and approve access:\n  {url}")
    code = input("Paste the `code` query parameter from the redirect: ").strip()
    await service.handle_callback("google", code, state, "http://localhost:8000")

    result = await service.sync("user_1", "google")
    print(f"Sync: {result.counts.to_dict()} (success={result.success})")

    recurring = [t for t in result.tasks if not t.completed]
    if recurring:
        task = recurring[0]
        task.recurrence = Recurrence.WEEKLY
        await service.save_local_edit(task)
        change = await service.complete_task(task.id)
        print(f"Next due: {change.task.due_date}, history entry: {change.snapshot.id}")

    await service.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
