"""License commands: check, list, activate, clear."""

import click

from smcredfish.cli import pass_context, run_on_nodes
from smcredfish.errors import BMCError


@click.group(name="license")
def license_cmd():
    """BMC license commands."""
    pass


@license_cmd.command()
@pass_context
def check(nctx):
    """Check for a virtual media license (SFT-OOB-LIC or SFT-DCMS-SINGLE)."""
    def _op(client, node):
        return client.license.check_virtual_media_license().to_dict()
    run_on_nodes(nctx, _op, label="license check")


@license_cmd.command(name="list")
@pass_context
def list_licenses(nctx):
    """List installed licenses."""
    def _op(client, node):
        return {"licenses": [lic["name"] for lic in client.license.list_licenses()]}
    run_on_nodes(nctx, _op, label="license list")


@license_cmd.command()
@click.argument("license_key")
@pass_context
def activate(nctx, license_key):
    """Activate a license key."""
    def _op(client, node):
        if not client.license.activate_license(license_key):
            raise BMCError("License activation was rejected")
        return {"message": "License activated"}
    run_on_nodes(nctx, _op, label="license activate")


@license_cmd.command()
@click.argument("license_id")
@pass_context
def clear(nctx, license_id):
    """Clear an installed license."""
    def _op(client, node):
        if not client.license.clear_license(license_id):
            raise BMCError("License clear was rejected")
        return {"message": f"License {license_id} cleared"}
    run_on_nodes(nctx, _op, label="license clear")
