# /ledgerbot/utils/queue.py

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from ledgerbot.utils.metrics import queue_tasks_counter

# Per-user serialization queue. Every event that touches a user's session,
# flow or cache state goes through enqueue() so two turns of the same user
# never interleave, while different users drain concurrently.

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class QueueTaskAborted(Exception):
    """The drain was interrupted before this task could produce a result."""


@dataclass
class QueueEntry:
    task: Task
    future: asyncio.Future
    # Set by clear_queue when the task is already running
    discarded: bool = False


class UserMessageQueue:
    def __init__(self):
        self._queues: Dict[str, Deque[QueueEntry]] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._running: Dict[str, QueueEntry] = {}

    async def enqueue(self, user_key: str, task: Task) -> Any:
        """
        Adds task to the user's queue and waits for its result.

        Tasks of one user run strictly one at a time in submission order on a
        dedicated drain task. If a task raises, the exception is logged,
        re-raised to this caller, and the queue moves on to the next task.
        Cancelling the caller does not abort a task that already started.
        Returns None when clear_queue() discarded the task, even if it was
        already running.
        """
        loop = asyncio.get_running_loop()
        entry = QueueEntry(task=task, future=loop.create_future())
        self._queues.setdefault(user_key, deque()).append(entry)

        if user_key not in self._workers:
            self._workers[user_key] = asyncio.create_task(self._drain(user_key))

        return await entry.future

    async def _drain(self, user_key: str):
        queue = self._queues.get(user_key)
        try:
            while queue:
                entry = queue.popleft()
                if entry.future.done():
                    # caller went away before the task started
                    continue
                self._running[user_key] = entry
                try:
                    result = await entry.task()
                except Exception as e:
                    queue_tasks_counter.labels(status="error").inc()
                    logger.error(f"Error processing queued task for {user_key}: {e}", exc_info=True)
                    self._resolve(entry, error=e)
                except BaseException as e:
                    queue_tasks_counter.labels(status="error").inc()
                    logger.error(f"Queue for {user_key} interrupted by {type(e).__name__}")
                    self._resolve(entry, error=QueueTaskAborted(f"Task for {user_key} was interrupted"))
                    raise
                else:
                    queue_tasks_counter.labels(status="success").inc()
                    self._resolve(entry, result=result)
                finally:
                    self._running.pop(user_key, None)
        finally:
            self._workers.pop(user_key, None)
            if self._queues.get(user_key) is queue:
                self._queues.pop(user_key, None)
            # Only non-empty after an interruption
            while queue:
                self._resolve(queue.popleft(), error=QueueTaskAborted(f"Queue for {user_key} was interrupted"))

    def _resolve(self, entry: QueueEntry, result: Any = None, error: Optional[BaseException] = None):
        if entry.future.done():
            return
        if entry.discarded:
            queue_tasks_counter.labels(status="discarded").inc()
            entry.future.set_result(None)
        elif error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(result)

    def clear_queue(self, user_key: str) -> int:
        """
        Discards tasks that have not started yet (their callers get None).
        A task already running is left to finish, but its caller gets None too.
        Returns the number of tasks that were still waiting.
        """
        running = self._running.get(user_key)
        if running is not None:
            running.discarded = True
            logger.info(f"Reply of the running task for {user_key} will be discarded")

        queue = self._queues.get(user_key)
        if not queue:
            return 0

        discarded = 0
        while queue:
            entry = queue.popleft()
            entry.discarded = True
            self._resolve(entry)
            discarded += 1
        logger.info(f"Discarded {discarded} pending tasks for {user_key}")
        return discarded

    def queue_length(self, user_key: str) -> int:
        """Number of tasks waiting to start (the running one is not counted)."""
        return len(self._queues.get(user_key) or ())

    def is_processing(self, user_key: str) -> bool:
        return user_key in self._workers

    async def wait_idle(self, user_key: Optional[str] = None):
        """Waits until the given user's queue (or every queue) has drained."""
        while True:
            if user_key is not None:
                workers = [self._workers[user_key]] if user_key in self._workers else []
            else:
                workers = list(self._workers.values())
            if not workers:
                return
            await asyncio.gather(*workers, return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        users = set(self._queues) | set(self._workers)
        stats = {
            "total_users": len(users),
            "active_queues": 0,
            "total_pending": 0,
            "users": [],
        }
        for user_key in sorted(users):
            pending = self.queue_length(user_key)
            processing = self.is_processing(user_key)
            if pending or processing:
                stats["active_queues"] += 1
            stats["total_pending"] += pending
            stats["users"].append({
                "user_key": user_key[:15] + "..." if len(user_key) > 15 else user_key,
                "pending": pending,
                "is_processing": processing,
            })
        return stats
