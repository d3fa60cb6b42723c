"""
CLI module for handling command-line interface operations.
"""

import importlib.metadata
import logging

import click

from ..commands.delete import delete
from ..commands.download import download
from ..commands.dump_config import dump_config
from ..commands.list_objects import list_objects
from ..commands.mkdir import mkdir
from ..commands.upload import upload
from ..constants import PACKAGE_ROOT
from ..logging import setup_cli_logging
from . import config_file, state_dir

log = logging.getLogger(PACKAGE_ROOT + ".cli")


class OrderedGroup(click.Group):
    """
    A click Group that keeps track of the order in which commands are added.
    """

    def list_commands(self, ctx):
        """Return the list of commands in the order they were added."""
        return list(self.commands.keys())


def build_cli():
    """
    Factory for building the CLI application.
    """

    @click.group(
        cls=OrderedGroup,
        help="Upload, download and list objects of an UpYun bucket.",
    )
    @click.version_option(
        version=importlib.metadata.version("upyun-transfer"),
        prog_name="upyun-transfer",
    )
    @click.option("--log-file", metavar="FILE", type=str, help="Path to log file")
    @click.option(
        "--log-level",
        default="INFO",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        help="Set the log level (default: INFO)",
    )
    @config_file
    @state_dir
    @click.pass_context
    def cli(ctx: click.Context, log_file: str | None, log_level: str, config_files: tuple[str, ...], state_dir: str):
        """
        Command-line interface function for setting up logging and shared options.

        :param log_file: Path to the log file. If provided, a file logger will be added.
        :param log_level: Log level for the logger.
        :param config_files: Configuration files, merged in the given order.
        :param state_dir: Directory for the breakpoints of suspended uploads.
        """
        setup_cli_logging(log_file, log_level)
        ctx.ensure_object(dict)
        ctx.obj["config_files"] = config_files
        ctx.obj["state_dir"] = state_dir

    cli.add_command(upload)
    cli.add_command(download)
    cli.add_command(list_objects, name="list")
    cli.add_command(mkdir)
    cli.add_command(delete)
    cli.add_command(dump_config)

    return cli


def main():
    """
    Main entry point for the CLI application.
    """
    cli = build_cli()
    cli()


if __name__ == "__main__":
    main()
