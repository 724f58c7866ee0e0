"""Main Click CLI app for smcredfish."""

import logging
import sys

import click

from smcredfish import __version__, DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY
from smcredfish.client import BMCClient, BMCError
from smcredfish.config import ClientConfig, load_nodes, load_credentials, resolve_nodes
from smcredfish.output import print_error, print_multi_node_results


class NodeContext:
    """Holds resolved nodes, credentials, and global flags."""

    def __init__(self):
        self.nodes = []
        self.username = ""
        self.password = ""
        self.json_mode = False
        self.verbose = False
        self.direct_mode = False
        self.retry_count = DEFAULT_RETRY_COUNT
        self.retry_delay = DEFAULT_RETRY_DELAY
        self.port = 443
        self.verify_ssl = False

    def get_client(self, node):
        """Create a BMCClient for a given node."""
        config = ClientConfig(
            host=node.console_ip,
            username=self.username,
            password=self.password,
            port=self.port,
            verify_ssl=self.verify_ssl,
            direct_mode=self.direct_mode,
            retry_count=self.retry_count,
            retry_delay=self.retry_delay,
            show_progress=not (self.verbose or self.json_mode),
        )
        return BMCClient(config=config, logger=logging.getLogger(f"smcredfish.{node.hostname}"))


pass_context = click.make_pass_decorator(NodeContext, ensure=True)


@click.group()
@click.option("--node", "-n", "--host", "node_names", multiple=True, help="Node hostname(s) or BMC IP(s) to target.")
@click.option("--nodes", "node_csv", default=None, help="Comma-separated list of node hostnames or IPs.")
@click.option("--all", "all_nodes", is_flag=True, help="Target all nodes from nodes.json.")
@click.option("--username", "-u", default=None, help="BMC username (default: ~/.redfish_credentials).")
@click.option("--password", "-p", default=None, help="BMC password (default: ~/.redfish_credentials).")
@click.option("--port", default=443, show_default=True, help="BMC HTTPS port.")
@click.option("--verify-ssl", is_flag=True, help="Verify the BMC's TLS certificate.")
@click.option("--direct", "direct_mode", is_flag=True, help="Use Basic auth on every request instead of a session.")
@click.option("--retries", "retry_count", default=DEFAULT_RETRY_COUNT, show_default=True,
              help="Attempts per request before giving up.")
@click.option("--retry-delay", default=DEFAULT_RETRY_DELAY, show_default=True, type=float,
              help="Base backoff delay in seconds.")
@click.option("--json", "json_mode", is_flag=True, help="Output in JSON format.")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.version_option(version=__version__, prog_name="smcredfish")
@click.pass_context
def cli(ctx, node_names, node_csv, all_nodes, username, password, port, verify_ssl,
        direct_mode, retry_count, retry_delay, json_mode, verbose):
    """smcredfish - Supermicro BMC Redfish client"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    nctx = NodeContext()
    nctx.json_mode = json_mode
    nctx.verbose = verbose
    nctx.port = port
    nctx.verify_ssl = verify_ssl
    nctx.direct_mode = direct_mode
    nctx.retry_count = retry_count
    nctx.retry_delay = retry_delay

    if username and password:
        nctx.username, nctx.password = username, password
    else:
        nctx.username, nctx.password = load_credentials()

    # Resolve target nodes
    all_available = load_nodes()

    if all_nodes:
        nctx.nodes = all_available
    elif node_csv:
        identifiers = [n.strip() for n in node_csv.split(",")]
        nctx.nodes = resolve_nodes(identifiers, all_available)
    elif node_names:
        nctx.nodes = resolve_nodes(list(node_names), all_available)

    ctx.obj = nctx


def run_on_nodes(nctx, operation, label=None):
    """Run an operation on all targeted nodes, collecting results.

    Each node gets its own client, logged in for the duration of the
    operation and logged out afterwards whatever happens.

    Args:
        nctx: NodeContext with nodes, credentials, flags
        operation: callable(client, node) -> dict (the result data)
        label: optional label for the operation (used in verbose mode)

    Returns:
        list of result dicts, one per node
    """
    if not nctx.nodes:
        print_error("No nodes specified. Use --node, --nodes, or --all.", nctx.json_mode)
        sys.exit(1)

    results = []
    any_failed = False

    for node in nctx.nodes:
        if nctx.verbose and not nctx.json_mode:
            click.echo(f"[{node.hostname}] Running {label or 'operation'}...")

        try:
            with nctx.get_client(node) as client:
                data = operation(client, node)
            results.append({
                "node": node.hostname,
                "success": True,
                "data": data,
            })
        except BMCError as e:
            any_failed = True
            results.append({
                "node": node.hostname,
                "success": False,
                "error": str(e),
            })
        except Exception as e:
            any_failed = True
            results.append({
                "node": node.hostname,
                "success": False,
                "error": f"Unexpected error: {e}",
            })

    print_multi_node_results(results, json_mode=nctx.json_mode)

    if any_failed:
        sys.exit(1)

    return results


# Import and register command groups
from smcredfish.commands.power import power  # noqa: E402
from smcredfish.commands.boot import boot  # noqa: E402
from smcredfish.commands.virtual_media import virtual_media  # noqa: E402
from smcredfish.commands.tasks import tasks  # noqa: E402
from smcredfish.commands.license import license_cmd  # noqa: E402
from smcredfish.commands.session import session  # noqa: E402
from smcredfish.commands.sel import sel  # noqa: E402
from smcredfish.commands.accounts import accounts  # noqa: E402
from smcredfish.commands.bmc import bmc  # noqa: E402

cli.add_command(power)
cli.add_command(boot)
cli.add_command(virtual_media, name="virtual-media")
cli.add_command(tasks)
cli.add_command(license_cmd, name="license")
cli.add_command(session)
cli.add_command(sel)
cli.add_command(accounts)
cli.add_command(bmc)
