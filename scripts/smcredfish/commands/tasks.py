"""Task service commands: list, status, wait, cancel, kill, summary."""

import click

from smcredfish.cli import pass_context, run_on_nodes
from smcredfish.errors import BMCError


@click.group()
def tasks():
    """Redfish task service commands."""
    pass


@tasks.command(name="list")
@pass_context
def list_tasks(nctx):
    """List tasks the BMC still keeps in its history."""
    def _op(client, node):
        return {"tasks": client.jobs.list_tasks()}
    run_on_nodes(nctx, _op, label="tasks list")


@tasks.command()
@click.argument("task_id")
@pass_context
def status(nctx, task_id):
    """Show one task."""
    def _op(client, node):
        return {"tasks": [client.jobs.task_status(task_id)]}
    run_on_nodes(nctx, _op, label=f"tasks status {task_id}")


@tasks.command()
@click.argument("task_id")
@click.option("--timeout", default=600, show_default=True, help="Seconds to wait.")
@pass_context
def wait(nctx, task_id, timeout):
    """Wait for a task to finish."""
    def _op(client, node):
        result = client.jobs.wait_for_task(task_id, timeout=timeout)
        if not result.success:
            raise BMCError(f"Task {task_id} did not complete: {result.error}")
        return result.to_dict()
    run_on_nodes(nctx, _op, label=f"tasks wait {task_id}")


@tasks.command()
@click.argument("task_id")
@pass_context
def cancel(nctx, task_id):
    """Cancel (kill) a task."""
    def _op(client, node):
        client.jobs.cancel_task(task_id)
        return {"message": f"Task {task_id} cancelled"}
    run_on_nodes(nctx, _op, label=f"tasks cancel {task_id}")


@tasks.command()
@pass_context
def kill(nctx):
    """Kill every pending or running task."""
    def _op(client, node):
        killed = client.jobs.kill_running_tasks()
        return {"message": f"Killed {killed} running tasks"}
    run_on_nodes(nctx, _op, label="tasks kill")


@tasks.command()
@pass_context
def summary(nctx):
    """Count completed and incomplete tasks."""
    def _op(client, node):
        return client.jobs.summary()
    run_on_nodes(nctx, _op, label="tasks summary")
