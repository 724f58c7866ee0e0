"""Polling of long-running Redfish tasks to a normalized result."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from smcredfish.spinner import Spinner

# Fixed pacing for expected-duration work; unrelated to request backoff
POLL_INTERVAL = 1


class TaskState(Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw):
        """Map a firmware TaskState string onto a TaskState."""
        return _FIRMWARE_STATES.get(raw, cls.UNKNOWN)

    @property
    def terminal(self):
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED)


_FIRMWARE_STATES = {
    "New": TaskState.PENDING,
    "Pending": TaskState.PENDING,
    "Starting": TaskState.PENDING,
    "Running": TaskState.RUNNING,
    "Completed": TaskState.COMPLETED,
    "Exception": TaskState.FAILED,
    "Killed": TaskState.CANCELLED,
    "Cancelled": TaskState.CANCELLED,
}


@dataclass
class AsyncOperation:
    """Client-side view of one remote task while it is being polled."""

    location: str
    state: TaskState = TaskState.PENDING
    raw_state: Optional[str] = None
    percent_complete: Optional[int] = None
    messages: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)

    def observe(self, task):
        """Fold one task document into this operation. Returns True if percent changed."""
        if self.state.terminal:
            return False
        raw = task.get("TaskState")
        self.raw_state = raw
        self.state = TaskState.parse(raw)

        for msg in task.get("Messages") or []:
            text = msg.get("Message") if isinstance(msg, dict) else msg
            if text and text not in self.messages:
                self.messages.append(text)
        if task.get("Message") and task["Message"] not in self.messages:
            self.messages.append(task["Message"])

        percent = _percent_complete(task)
        if percent and percent > 0 and percent != self.percent_complete:
            self.percent_complete = percent
            return True
        return False

    def to_dict(self):
        return {
            "location": self.location,
            "state": self.state.value,
            "raw_state": self.raw_state,
            "percent_complete": self.percent_complete,
            "messages": list(self.messages),
            "started_at": self.started_at.isoformat(),
        }


@dataclass
class TaskResult:
    success: bool
    operation: Optional[AsyncOperation] = None
    error: Optional[str] = None

    def to_dict(self):
        return {
            "success": self.success,
            "operation": self.operation.to_dict() if self.operation else None,
            "error": self.error,
        }


def _percent_complete(task):
    percent = task.get("PercentComplete")
    if percent is None:
        percent = ((task.get("Oem") or {}).get("Supermicro") or {}).get("PercentComplete")
    try:
        return int(percent) if percent is not None else None
    except (TypeError, ValueError):
        return None


def _json_body(resp):
    if not resp.content:
        return None
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class TaskPoller:
    """Waits for tasks started by mutating Redfish calls (202 Accepted)."""

    def __init__(self, client):
        self.client = client

    @property
    def log(self):
        return self.client.log

    def wait_for_completion(self, response, timeout=30):
        """Return a TaskResult for a response that may have started a task.

        Anything other than 202 is treated as already complete. The task's
        own ``@odata.id`` is preferred over the Location header and the
        ``TaskMonitor`` URI, which this firmware intermittently 404s.
        """
        if response.status_code != 202:
            return TaskResult(success=True)

        body = _json_body(response) or {}
        location = body.get("@odata.id") or response.headers.get("Location")
        if not location and body.get("TaskMonitor"):
            self.log.debug(f"Using TaskMonitor endpoint (may not be supported): {body['TaskMonitor']}")
            location = body["TaskMonitor"]

        if not location:
            self.log.debug("No task location found, assuming synchronous completion")
            return TaskResult(success=True)

        self.log.debug(f"Task started: {location}")
        return self.poll_task(location, timeout=timeout)

    def _spinner_enabled(self):
        return self.client.config.show_progress and not self.log.isEnabledFor(logging.DEBUG)

    def poll_task(self, location, timeout=30):
        """Poll ``location`` once per POLL_INTERVAL until terminal or ``timeout`` seconds."""
        operation = AsyncOperation(location=location)
        task_name = location.rstrip("/").split("/")[-1]
        spinner = Spinner(f"Processing task {task_name}") if self._spinner_enabled() else None
        if spinner:
            spinner.start()

        deadline = time.monotonic() + timeout
        try:
            while time.monotonic() < deadline:
                resp = self.client.authenticated_request("GET", location)
                status = resp.status_code
                task = _json_body(resp)

                if status == 202:
                    if not task or "TaskState" not in task:
                        self._update(spinner, "Waiting for task to start...")
                        self.log.debug("  Task pending (202)...")
                        time.sleep(POLL_INTERVAL)
                        continue
                elif status == 200:
                    if task is None:
                        self.log.debug("Could not parse task response")
                        time.sleep(POLL_INTERVAL)
                        continue
                elif status == 404:
                    self._stop(spinner, "Task endpoint not found", success=False)
                    self.log.error(f"Task endpoint {location} returned 404 - cannot monitor task")
                    return TaskResult(success=False, operation=operation, error="task_endpoint_not_found")
                elif status == 400:
                    # Completion with an error is sometimes reported as a 400 carrying the task
                    if not task or "TaskState" not in task:
                        self._stop(spinner, "Task request rejected", success=False)
                        self.log.error(f"400 response while polling {location}: {resp.text}")
                        return TaskResult(success=False, operation=operation, error="bad_request")
                    if TaskState.parse(task["TaskState"]) not in (TaskState.COMPLETED, TaskState.FAILED):
                        self.log.debug(f"Unexpected 400 response with TaskState: {task['TaskState']}")
                        time.sleep(POLL_INTERVAL)
                        continue
                else:
                    self.log.debug(f"Unexpected task response: {status}")
                    time.sleep(POLL_INTERVAL)
                    continue

                if "TaskState" not in task:
                    time.sleep(POLL_INTERVAL)
                    continue

                if operation.observe(task):
                    self._update(spinner, f"Task progress: {operation.percent_complete}%")
                    self.log.debug(f"  Task progress: {operation.percent_complete}%")

                result = self._result_for(operation, spinner)
                if result is not None:
                    return result
                time.sleep(POLL_INTERVAL)

            self._stop(spinner, f"Task timed out after {timeout} seconds", success=False)
            self.log.warning(f"Task polling timed out after {timeout} seconds")
            return TaskResult(success=False, operation=operation, error="timeout")
        finally:
            if spinner:
                spinner.stop()

    def _result_for(self, operation, spinner):
        state = operation.state
        if state is TaskState.COMPLETED:
            self._stop(spinner, "Task completed successfully")
            self.log.debug("Task completed successfully")
            return TaskResult(success=True, operation=operation)
        if state in (TaskState.FAILED, TaskState.CANCELLED):
            self._stop(spinner, f"Task failed: {operation.raw_state}", success=False)
            self.log.error(f"Task failed: {operation.raw_state}")
            for message in operation.messages:
                self.log.error(f"  {message}")
            error = operation.messages[0] if operation.messages else f"Task ended in state {operation.raw_state}"
            return TaskResult(success=False, operation=operation, error=error)
        if state is TaskState.UNKNOWN:
            self._update(spinner, f"Task state: {operation.raw_state}")
            self.log.warning(f"Unknown task state: {operation.raw_state}")
        else:
            self._update(spinner, f"Task {state.value.lower()}...")
            self.log.debug(f"  Task state: {operation.raw_state}")
        return None

    @staticmethod
    def _update(spinner, message):
        if spinner:
            spinner.update(message)

    @staticmethod
    def _stop(spinner, message, success=True):
        if spinner:
            spinner.stop(message, success=success)
