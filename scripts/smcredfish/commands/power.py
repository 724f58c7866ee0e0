"""Power management commands: status, on, off, restart, cycle, reset-types."""

import click

from smcredfish.cli import pass_context, run_on_nodes


@click.group()
def power():
    """Power management commands."""
    pass


@power.command()
@pass_context
def status(nctx):
    """Get power status."""
    def _op(client, node):
        return {"power_state": client.power.status()}
    run_on_nodes(nctx, _op, label="power status")


@power.command()
@pass_context
def on(nctx):
    """Power on the server."""
    def _op(client, node):
        client.power.on()
        return {"message": "Power on requested"}
    run_on_nodes(nctx, _op, label="power on")


@power.command()
@click.option("--force", is_flag=True, help="ForceOff instead of a graceful shutdown.")
@pass_context
def off(nctx, force):
    """Shut down the server (graceful, falling back to ForceOff)."""
    def _op(client, node):
        client.power.off(force=force)
        return {"message": "Power off requested"}
    run_on_nodes(nctx, _op, label="power off")


@power.command()
@click.option("--force", is_flag=True, help="ForceRestart instead of a graceful restart.")
@pass_context
def restart(nctx, force):
    """Restart the server (graceful, falling back to ForceRestart)."""
    def _op(client, node):
        client.power.restart(force=force)
        return {"message": "Restart requested"}
    run_on_nodes(nctx, _op, label="power restart")


@power.command()
@pass_context
def cycle(nctx):
    """Power cycle the server."""
    def _op(client, node):
        client.power.cycle()
        return {"message": "Power cycle requested"}
    run_on_nodes(nctx, _op, label="power cycle")


@power.command(name="reset-types")
@pass_context
def reset_types(nctx):
    """List the reset types the BMC accepts."""
    def _op(client, node):
        return {"reset_types": client.power.allowed_reset_types()}
    run_on_nodes(nctx, _op, label="power reset-types")
