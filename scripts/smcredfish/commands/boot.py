"""Boot management commands: get, devices, set-next, set-persistent, clear, order."""

import click

from smcredfish import BOOT_DEVICES
from smcredfish.cli import pass_context, run_on_nodes


@click.group()
def boot():
    """Boot configuration commands."""
    pass


@boot.command()
@pass_context
def get(nctx):
    """Get current boot override and boot order."""
    def _op(client, node):
        return client.boot.options()
    run_on_nodes(nctx, _op, label="boot get")


@boot.command()
@pass_context
def devices(nctx):
    """List UEFI boot options."""
    def _op(client, node):
        return {"boot_devices": [d["name"] for d in client.boot.devices()]}
    run_on_nodes(nctx, _op, label="boot devices")


@boot.command(name="set-next")
@click.argument("device", type=click.Choice(BOOT_DEVICES, case_sensitive=False))
@click.option("--mode", type=click.Choice(["UEFI", "Legacy"]), default=None, help="Boot mode.")
@pass_context
def set_next(nctx, device, mode):
    """Set the boot device for the next boot only."""
    target = _canonical(device)

    def _op(client, node):
        client.boot.set_override(target, persistence="Once", mode=mode)
        return {"message": f"Next boot set to {target}"}
    run_on_nodes(nctx, _op, label=f"boot set-next {target}")


@boot.command(name="set-persistent")
@click.argument("device", type=click.Choice(BOOT_DEVICES, case_sensitive=False))
@click.option("--mode", type=click.Choice(["UEFI", "Legacy"]), default=None, help="Boot mode.")
@pass_context
def set_persistent(nctx, device, mode):
    """Set the persistent boot device."""
    target = _canonical(device)

    def _op(client, node):
        client.boot.set_override(target, persistence="Continuous", mode=mode)
        return {"message": f"Persistent boot set to {target}"}
    run_on_nodes(nctx, _op, label=f"boot set-persistent {target}")


@boot.command()
@pass_context
def clear(nctx):
    """Disable any boot source override."""
    def _op(client, node):
        client.boot.clear_override()
        return {"message": "Boot override cleared"}
    run_on_nodes(nctx, _op, label="boot clear")


@boot.command()
@click.argument("references", nargs=-1, required=True)
@pass_context
def order(nctx, references):
    """Set the boot order (Boot0001 Boot0002 ...)."""
    def _op(client, node):
        client.boot.set_order(references)
        return {"message": f"Boot order set to {', '.join(references)}"}
    run_on_nodes(nctx, _op, label="boot order")


def _canonical(device):
    # click.Choice with case_sensitive=False hands back the user's casing
    for name in BOOT_DEVICES:
        if name.lower() == device.lower():
            return name
    return device
