"""Session commands: check that login works and report the BMC's versions."""

import click

from smcredfish.cli import pass_context, run_on_nodes


@click.group()
def session():
    """Redfish session commands."""
    pass


@session.command()
@pass_context
def test(nctx):
    """Log in, report auth mode and versions, then log out."""
    def _op(client, node):
        return {
            "auth_mode": "basic" if client.direct_mode else "session",
            "redfish_version": client.redfish_version(),
            "firmware_version": client.firmware_version(),
        }
    run_on_nodes(nctx, _op, label="session test")
