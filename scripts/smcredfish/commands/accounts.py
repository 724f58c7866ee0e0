"""BMC user account commands: list, create, delete, passwd, sessions."""

import click

from smcredfish.cli import pass_context, run_on_nodes


@click.group()
def accounts():
    """BMC user account commands."""
    pass


@accounts.command(name="list")
@pass_context
def accounts_list(nctx):
    """List BMC user accounts."""
    def _op(client, node):
        return {"accounts": client.accounts.list_accounts()}
    run_on_nodes(nctx, _op, label="accounts list")


@accounts.command()
@click.argument("username")
@click.option("--account-password", prompt=True, hide_input=True, confirmation_prompt=True,
              help="Password for the new account.")
@click.option("--role", default="Administrator", show_default=True,
              type=click.Choice(["Administrator", "Operator", "ReadOnly"]), help="Account role.")
@pass_context
def create(nctx, username, account_password, role):
    """Create a BMC user account."""
    def _op(client, node):
        client.accounts.create_account(username, account_password, role=role)
        return {"message": f"Account {username} created with role {role}"}
    run_on_nodes(nctx, _op, label=f"accounts create {username}")


@accounts.command()
@click.argument("username")
@click.confirmation_option(prompt="Delete this account?")
@pass_context
def delete(nctx, username):
    """Delete a BMC user account."""
    def _op(client, node):
        client.accounts.delete_account(username)
        return {"message": f"Account {username} deleted"}
    run_on_nodes(nctx, _op, label=f"accounts delete {username}")


@accounts.command()
@click.argument("username")
@click.option("--new-password", prompt=True, hide_input=True, confirmation_prompt=True,
              help="New password for the account.")
@pass_context
def passwd(nctx, username, new_password):
    """Change a BMC user account's password."""
    def _op(client, node):
        client.accounts.update_password(username, new_password)
        return {"message": f"Password updated for {username}"}
    run_on_nodes(nctx, _op, label=f"accounts passwd {username}")


@accounts.command()
@pass_context
def sessions(nctx):
    """List open Redfish sessions."""
    def _op(client, node):
        return {"sessions": client.accounts.sessions()}
    run_on_nodes(nctx, _op, label="accounts sessions")
