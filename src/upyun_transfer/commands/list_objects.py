"""Command for listing a directory."""

import json
import logging

import click

from ..cli import client_from_ctx, output_json, remote_path
from ..models.objects import ObjectMetadata

log = logging.getLogger(__name__)


def _entry_as_dict(entry: ObjectMetadata) -> dict:
    return {
        "name": entry.name,
        "size": entry.size,
        "is_dir": entry.is_dir,
        "empty_dir": entry.empty_dir,
        "content_type": entry.content_type,
        "mod_time": entry.mod_time.isoformat() if entry.mod_time else None,
    }


def _echo_entry(entry: ObjectMetadata, as_json: bool):
    if as_json:
        click.echo(json.dumps(_entry_as_dict(entry)))
    else:
        suffix = "/" if entry.is_dir else ""
        click.echo(f"{entry.size:>14}  {entry.name}{suffix}")


@click.command()
@remote_path
@click.option("--max-level", type=int, default=None, help="Depth of the listing, -1 for unlimited.")
@click.option("--max-objects", type=int, default=None, help="Stop after this many entries.")
@click.option("--desc", "desc_order", is_flag=True, help="List in descending order.")
@click.option("--page", is_flag=True, help="List a single page instead of recursing.")
@click.option("--iter", "cursor", metavar="CURSOR", type=str, default="", help="Cursor of the page to list.")
@click.option("--limit", type=int, default=0, help="Page size for --page (1 to 4096).")
@output_json
@click.pass_context
def list_objects(ctx: click.Context, remote_path, max_level, max_objects, desc_order, page, cursor, limit, output_json):
    """
    List the contents of REMOTE_PATH.
    """
    client = client_from_ctx(ctx)

    if page:
        entries, next_cursor = client.list_objects(remote_path, cursor=cursor, desc_order=desc_order, limit=limit)
        for entry in entries:
            _echo_entry(entry, output_json)
        if next_cursor:
            log.info("Next page: --iter %s", next_cursor)
        return

    overrides: dict = {"desc_order": desc_order}
    if max_level is not None:
        overrides["max_list_level"] = max_level
    if max_objects is not None:
        overrides["max_list_objects"] = max_objects

    count = 0
    for entry in client.iter_objects(client.list_config(remote_path, **overrides)):
        _echo_entry(entry, output_json)
        count += 1
    log.info("Listed %d entries.", count)
