"""BMC (manager) commands: info, service-info, protocols, set-protocol, datetime, reset."""

import click

from smcredfish.cli import pass_context, run_on_nodes
from smcredfish.manager import NETWORK_PROTOCOLS


@click.group()
def bmc():
    """BMC configuration commands."""
    pass


@bmc.command(name="info")
@pass_context
def bmc_info(nctx):
    """Get BMC model, firmware, health and clock."""
    def _op(client, node):
        return client.manager.info()
    run_on_nodes(nctx, _op, label="bmc info")


@bmc.command(name="service-info")
@pass_context
def service_info(nctx):
    """Get the Redfish service root summary."""
    def _op(client, node):
        return client.manager.service_info()
    run_on_nodes(nctx, _op, label="bmc service-info")


@bmc.command()
@pass_context
def protocols(nctx):
    """List network protocols with their state and port."""
    def _op(client, node):
        return {"protocols": client.manager.network_protocols()}
    run_on_nodes(nctx, _op, label="bmc protocols")


@bmc.command(name="set-protocol")
@click.argument("protocol", type=click.Choice(NETWORK_PROTOCOLS, case_sensitive=False))
@click.option("--enable/--disable", "enabled", required=True, help="Enable or disable the protocol.")
@click.option("--port", type=int, default=None, help="Port to listen on.")
@pass_context
def set_protocol(nctx, protocol, enabled, port):
    """Enable or disable a network protocol."""
    def _op(client, node):
        client.manager.set_network_protocol(protocol, enabled, port=port)
        state = "enabled" if enabled else "disabled"
        return {"message": f"{protocol} {state}"}
    run_on_nodes(nctx, _op, label=f"bmc set-protocol {protocol}")


@bmc.command()
@click.argument("value")
@pass_context
def datetime(nctx, value):
    """Set the BMC clock (ISO 8601, e.g. 2024-01-01T00:00:00+00:00)."""
    def _op(client, node):
        client.manager.set_datetime(value)
        return {"message": f"BMC datetime set to {value}"}
    run_on_nodes(nctx, _op, label="bmc datetime")


@bmc.command()
@click.confirmation_option(prompt="Restart the BMC?")
@pass_context
def reset(nctx):
    """Restart the BMC (GracefulRestart)."""
    def _op(client, node):
        client.manager.reset()
        return {"message": "BMC reset initiated"}
    run_on_nodes(nctx, _op, label="bmc reset")
