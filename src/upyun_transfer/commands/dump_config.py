"""Command for dumping the configuration."""

import json
import logging

import click

from ..cli import config_files_from_ctx
from ..utils.config import read_and_merge_config_files, redact_secrets

log = logging.getLogger(__name__)


@click.command()
@click.pass_context
def dump_config(ctx: click.Context):
    """
    Dump the merged configuration as read from config files.
    """
    config_files = config_files_from_ctx(ctx)
    log.info(f"Configuration files to load: {json.dumps([str(p.absolute()) for p in config_files])}")

    config = read_and_merge_config_files(config_files)
    log.info(f"Merged configuration: {json.dumps(redact_secrets(config), indent=2)}")

    log.info(
        "Note this only dumps the merged configuration as read from the files. "
        "It does not validate the configuration and ignores any environment variables."
    )
