"""Task collection operations: list, inspect, wait, cancel.

Supermicro never deletes task records. DELETE only marks a task Killed,
and the BMC keeps a rolling history of roughly 30 tasks, overwriting the
oldest. Nothing here assumes a cancelled task disappears.
"""

from smcredfish import REDFISH_TASKS
from smcredfish.errors import BMCProtocolError, BMCTimeoutError
from smcredfish.tasks import TaskState


def _task_record(task):
    percent = task.get("PercentComplete")
    if percent is None:
        percent = ((task.get("Oem") or {}).get("Supermicro") or {}).get("PercentComplete")
    return {
        "id": task.get("Id"),
        "name": task.get("Name"),
        "state": task.get("TaskState"),
        "status": task.get("TaskStatus"),
        "percent_complete": percent,
        "start_time": task.get("StartTime"),
        "end_time": task.get("EndTime"),
        "messages": [m.get("Message") for m in task.get("Messages") or [] if isinstance(m, dict)],
    }


class TaskService:
    def __init__(self, client):
        self.client = client

    def _task_uri(self, task_id):
        if str(task_id).startswith("/"):
            return task_id
        return f"{REDFISH_TASKS}/{task_id}"

    def _members(self):
        resp = self.client.authenticated_request("GET", REDFISH_TASKS)
        if resp.status_code != 200:
            self.client.log.debug(f"Task collection unavailable: HTTP {resp.status_code}")
            return []
        data = self.client.parse_json(resp)
        return [m["@odata.id"] for m in data.get("Members") or [] if m.get("@odata.id")]

    def _fetch(self, uri):
        resp = self.client.authenticated_request("GET", uri)
        if resp.status_code != 200:
            return None
        return self.client.parse_json(resp)

    def list_tasks(self):
        """Every task the BMC still remembers, fetched one by one (no $expand)."""
        tasks = []
        for uri in self._members():
            task = self._fetch(uri)
            if task is not None:
                tasks.append(_task_record(task))
        return tasks

    def task_status(self, task_id):
        resp = self.client.authenticated_request("GET", self._task_uri(task_id))
        if resp.status_code != 200:
            raise BMCProtocolError(
                f"Failed to get task status. Status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return _task_record(self.client.parse_json(resp))

    def wait_for_task(self, task_id, timeout=600):
        """Block until the task is terminal.

        Returns the TaskResult for terminal tasks; raises BMCTimeoutError
        when ``timeout`` seconds pass first.
        """
        result = self.client.tasks.poll_task(self._task_uri(task_id), timeout=timeout)
        if not result.success and result.error == "timeout":
            raise BMCTimeoutError(f"Task {task_id} timed out after {timeout} seconds")
        return result

    def cancel_task(self, task_id):
        self.client.log.info(f"Cancelling task {task_id}...")
        resp = self.client.authenticated_request("DELETE", self._task_uri(task_id))
        if 200 <= resp.status_code < 300:
            self.client.log.info(f"Task {task_id} cancelled")
            return True
        raise BMCProtocolError(
            f"Failed to cancel task: {resp.status_code} - {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )

    def kill_running_tasks(self):
        """DELETE every task still pending or running. Returns how many were killed."""
        members = self._members()
        killed = 0
        for uri in members:
            task = self._fetch(uri)
            if task is None:
                continue
            if TaskState.parse(task.get("TaskState")) in (TaskState.PENDING, TaskState.RUNNING):
                self.client.log.info(f"Killing task {task.get('Id')}: {task.get('Name')} ({task.get('TaskState')})")
                self.client.authenticated_request("DELETE", uri)
                killed += 1

        if killed:
            self.client.log.info(f"Killed {killed} running tasks")
        else:
            self.client.log.info(f"No running tasks to kill ({len(members)} finished tasks remain in history)")
        return killed

    def summary(self):
        tasks = self.list_tasks()
        completed = sum(1 for t in tasks if t["state"] == "Completed")
        return {
            "completed_count": completed,
            "incomplete_count": len(tasks) - completed,
            "total_count": len(tasks),
        }
