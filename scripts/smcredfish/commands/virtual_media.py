"""Virtual media commands: status, mount, unmount, unmount-all, mount-and-boot."""

import click

from smcredfish.cli import pass_context, run_on_nodes
from smcredfish.errors import BMCError


@click.group(name="virtual-media")
def virtual_media():
    """Virtual media management commands."""
    pass


@virtual_media.command()
@pass_context
def status(nctx):
    """Show every virtual media slot and what is connected to it."""
    def _op(client, node):
        return {"virtual_media": [d.to_dict() for d in client.virtual_media.status()]}
    run_on_nodes(nctx, _op, label="virtual-media status")


@virtual_media.command()
@click.argument("image_url")
@click.option("--device", "-d", default=None, help="Slot Id (default: best CD/DVD slot).")
@pass_context
def mount(nctx, image_url, device):
    """Mount an ISO from a URL and verify the BMC connected it."""
    def _op(client, node):
        if not client.virtual_media.insert_media(image_url, device=device):
            raise BMCError(f"{image_url} was inserted but never connected")
        return {"message": f"Mounted {image_url}"}
    run_on_nodes(nctx, _op, label="virtual-media mount")


@virtual_media.command()
@click.option("--device", "-d", default=None, help="Slot Id (default: first slot with media).")
@pass_context
def unmount(nctx, device):
    """Eject media from a slot."""
    def _op(client, node):
        if client.virtual_media.eject_media(device=device):
            return {"message": "Media ejected"}
        return {"message": "No media to eject"}
    run_on_nodes(nctx, _op, label="virtual-media unmount")


@virtual_media.command(name="unmount-all")
@pass_context
def unmount_all(nctx):
    """Eject media from every slot."""
    def _op(client, node):
        if not client.virtual_media.unmount_all():
            raise BMCError("Some virtual media slots could not be ejected")
        return {"message": "All virtual media ejected"}
    run_on_nodes(nctx, _op, label="virtual-media unmount-all")


@virtual_media.command(name="mount-and-boot")
@click.argument("image_url")
@click.option("--device", "-d", default=None, help="Slot Id (default: best CD/DVD slot).")
@click.option("--restart", is_flag=True, help="Restart the server after setting the boot override.")
@pass_context
def mount_and_boot(nctx, image_url, device, restart):
    """Mount an ISO and set a one-time boot from virtual CD."""
    def _op(client, node):
        if not client.virtual_media.mount_iso_and_boot(image_url, device=device):
            raise BMCError(f"Failed to mount {image_url} and set CD boot")
        if restart:
            client.power.restart()
            return {"message": f"Mounted {image_url}, restarting into it"}
        return {"message": f"Mounted {image_url}; next boot is virtual CD"}
    run_on_nodes(nctx, _op, label="virtual-media mount-and-boot")
