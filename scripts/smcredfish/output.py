"""Output formatting for smcredfish - human-readable and JSON modes."""

import json

import click


def format_json(data):
    """Format data as pretty-printed JSON."""
    return json.dumps(data, indent=2, default=str)


def print_error(message, json_mode=False):
    """Print an error message, respecting --json flag."""
    if json_mode:
        click.echo(format_json({"error": message}), err=True)
    else:
        click.echo(f"Error: {message}", err=True)


def print_multi_node_results(results, json_mode=False):
    """Print results from a multi-node operation.

    Args:
        results: list of dicts with keys: node, success, data/error
        json_mode: output as JSON if True
    """
    if json_mode:
        click.echo(format_json(results))
        return

    for result in results:
        node = result.get("node", "unknown")
        click.echo(f"\n--- {node} ---")
        if result.get("success"):
            click.echo(format_human(result.get("data", {})))
        else:
            click.echo(f"Error: {result.get('error', 'unknown error')}", err=True)


def format_human(data):
    """Convert a result dict to human-readable text."""
    if not data:
        return "No data."

    if "message" in data and len(data) == 1:
        return data["message"]

    if "virtual_media" in data:
        return _format_virtual_media(data["virtual_media"])

    if "tasks" in data:
        return _format_tasks(data["tasks"])

    if "operation" in data and "success" in data:
        return _format_task_result(data)

    return _format_generic(data)


def _format_virtual_media(devices):
    if not devices:
        return "No virtual media devices."
    lines = []
    for media in devices:
        lines.append(f"  Device: {media.get('name')} ({media.get('device')})")
        if media.get("media_types"):
            lines.append(f"    Media Types: {', '.join(media['media_types'])}")
        lines.append(f"    Inserted: {'Yes' if media.get('inserted') else 'No'}")
        if media.get("image"):
            lines.append(f"    Image: {media['image']}")
        if media.get("connected_via"):
            lines.append(f"    Connected Via: {media['connected_via']}")
    return "\n".join(lines)


def _format_tasks(tasks):
    if not tasks:
        return "No tasks found."
    lines = []
    for task in tasks:
        percent = f" ({task['percent_complete']}%)" if task.get("percent_complete") else ""
        lines.append(f"  [{task.get('state')}] {task.get('name')} - {task.get('status')}{percent}")
        lines.append(f"    ID: {task.get('id')}")
        if task.get("start_time"):
            lines.append(f"    Started: {task['start_time']}")
        if task.get("end_time"):
            lines.append(f"    Ended: {task['end_time']}")
    return "\n".join(lines)


def _format_task_result(result):
    op = result.get("operation") or {}
    lines = [f"  Success: {result.get('success')}"]
    if op:
        lines.append(f"  State: {op.get('raw_state') or op.get('state')}")
        if op.get("percent_complete") is not None:
            lines.append(f"  Progress: {op['percent_complete']}%")
        for message in op.get("messages") or []:
            lines.append(f"  Message: {message}")
    if result.get("error"):
        lines.append(f"  Error: {result['error']}")
    return "\n".join(lines)


def _format_generic(data):
    """Format arbitrary dict as indented key-value lines."""
    lines = []
    for key, value in data.items():
        if isinstance(value, dict):
            lines.append(f"  {key}:")
            for k2, v2 in value.items():
                lines.append(f"    {k2}: {v2}")
        elif isinstance(value, list):
            if all(not isinstance(v, (dict, list)) for v in value):
                lines.append(f"  {key}: {', '.join(str(v) for v in value) if value else '[]'}")
            elif all(isinstance(v, dict) for v in value):
                # One line per record (SEL entries, accounts, sessions)
                lines.append(f"  {key}:")
                for record in value:
                    fields = ", ".join(f"{k2}: {v2}" for k2, v2 in record.items() if v2 is not None)
                    lines.append(f"    - {fields}")
            else:
                lines.append(f"  {key}: [{len(value)} items]")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines) if lines else format_json(data)
