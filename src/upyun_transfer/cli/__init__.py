"""
Common click options and helpers for the CLI commands.
"""

from pathlib import Path

import click
import platformdirs

from ..breakpoint import FileBreakpointStore
from ..client import UpYunClient
from ..utils.config import read_config

DEFAULT_CONFIG_PATH = Path(platformdirs.user_config_dir("upyun-transfer")) / "config.yaml"
DEFAULT_STATE_DIR = Path(platformdirs.user_state_dir("upyun-transfer"))

# Aliases for path types for click options
# Naming convention: {DIR,FILE}_{Read,Write}_{Exists,Create}
FILE_R_E = click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True)
DIR_RW_C = click.Path(
    exists=False,
    file_okay=False,
    dir_okay=True,
    readable=True,
    writable=True,
    resolve_path=True,
)

config_file = click.option(
    "--config-file",
    "config_files",
    metavar="PATH",
    type=FILE_R_E,
    multiple=True,
    help="Path to config file, can be given multiple times. Later files take precedence.",
)

state_dir = click.option(
    "--state-dir",
    metavar="PATH",
    type=DIR_RW_C,
    default=DEFAULT_STATE_DIR,
    show_default=True,
    help="Directory holding the breakpoints of suspended uploads",
)

remote_path = click.argument("remote_path", metavar="REMOTE_PATH", type=str)

output_json = click.option("--json", "output_json", is_flag=True, help="Output JSON for machine-readability.")


def config_files_from_ctx(ctx: click.Context) -> list[Path]:
    """Config files given to the group, or the default config file if none were given and it exists."""
    config_files = [Path(p) for p in (ctx.obj or {}).get("config_files", ())]
    if not config_files and DEFAULT_CONFIG_PATH.exists():
        config_files = [DEFAULT_CONFIG_PATH]
    return config_files


def client_from_ctx(ctx: click.Context) -> UpYunClient:
    """Create a client from the configuration and state directory given to the CLI group."""
    config = read_config(config_files_from_ctx(ctx))
    store = FileBreakpointStore(Path(ctx.obj["state_dir"]) / "breakpoints.json")
    return UpYunClient(config, breakpoint_store=store)
