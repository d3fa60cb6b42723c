"""Command for creating a directory."""

import click

from ..cli import client_from_ctx, remote_path


@click.command()
@remote_path
@click.pass_context
def mkdir(ctx: click.Context, remote_path):
    """
    Create the directory REMOTE_PATH.
    """
    client_from_ctx(ctx).mkdir(remote_path)
