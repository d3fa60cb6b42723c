"""Command for deleting a file or an empty directory."""

import logging

import click

from ..cli import client_from_ctx, remote_path

log = logging.getLogger(__name__)


@click.command()
@remote_path
@click.option("--folder", is_flag=True, help="REMOTE_PATH is an (empty) directory.")
@click.option("--async", "async_delete", is_flag=True, help="Let the service delete asynchronously.")
@click.pass_context
def delete(ctx: click.Context, remote_path, folder, async_delete):
    """
    Delete REMOTE_PATH.
    """
    client = client_from_ctx(ctx)
    client.delete(remote_path, async_delete=async_delete, folder=folder)
    log.info("Deleted %s", remote_path)
