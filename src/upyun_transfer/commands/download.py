"""Command for downloading a file or directory."""

import logging
from pathlib import Path

import click

from ..cli import client_from_ctx, remote_path

log = logging.getLogger(__name__)


@click.command()
@remote_path
@click.argument("local_path", metavar="LOCAL_PATH", type=click.Path(resolve_path=True))
@click.option("--recursive", "-r", is_flag=True, help="Download a directory with all its descendants.")
@click.pass_context
def download(ctx: click.Context, remote_path, local_path, recursive):
    """
    Download REMOTE_PATH to LOCAL_PATH.
    """
    client = client_from_ctx(ctx)

    log.info("Starting download...")
    if recursive:
        count = client.download_tree(remote_path, Path(local_path))
        log.info("Downloaded %d files.", count)
    else:
        info = client.get(remote_path, local_path=local_path)
        log.info("Downloaded %d bytes.", info.size)

    log.info("Download finished!")
