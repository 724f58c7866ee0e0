"""System Event Log commands: list, summary, clear."""

import click

from smcredfish.cli import pass_context, run_on_nodes


@click.group()
def sel():
    """System Event Log commands."""
    pass


@sel.command(name="list")
@pass_context
def sel_list(nctx):
    """List SEL entries, newest first."""
    def _op(client, node):
        return {"entries": client.sel.entries()}
    run_on_nodes(nctx, _op, label="sel list")


@sel.command()
@click.option("--limit", default=10, show_default=True, help="Number of recent entries to show.")
@pass_context
def summary(nctx, limit):
    """Show entry counts by severity and the most recent entries."""
    def _op(client, node):
        return client.sel.summary(limit=limit)
    run_on_nodes(nctx, _op, label="sel summary")


@sel.command()
@click.confirmation_option(prompt="Clear the System Event Log?")
@pass_context
def clear(nctx):
    """Clear the System Event Log."""
    def _op(client, node):
        client.sel.clear()
        return {"message": "SEL cleared"}
    run_on_nodes(nctx, _op, label="sel clear")
