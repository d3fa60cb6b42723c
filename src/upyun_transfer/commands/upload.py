"""Command for uploading a file."""

import logging
import mimetypes

import click

from ..cli import FILE_R_E, client_from_ctx, remote_path
from ..exceptions import BreakpointNotFoundError, ExhaustedRetriesError

log = logging.getLogger(__name__)


@click.command()
@click.argument("local_file", metavar="LOCAL_FILE", type=FILE_R_E)
@remote_path
@click.option(
    "--resumable/--no-resumable",
    default=True,
    show_default=True,
    help="Upload large files in parts that can be resumed after failures.",
)
@click.option(
    "--resume",
    "upload_id",
    metavar="UPLOAD_ID",
    type=str,
    default=None,
    help="Continue the suspended upload with this upload ID.",
)
@click.option("--content-type", metavar="STRING", type=str, default=None, help="Content type of the object.")
@click.pass_context
def upload(ctx: click.Context, local_file, remote_path, resumable, upload_id, content_type):
    """
    Upload LOCAL_FILE to REMOTE_PATH.
    """
    client = client_from_ctx(ctx)

    content_type = content_type or mimetypes.guess_type(local_file)[0]
    headers = {"Content-Type": content_type} if content_type else {}

    log.info("Uploading %s to %s...", local_file, remote_path)
    try:
        if upload_id is not None:
            client.resume_put(remote_path, upload_id, local_path=local_file, headers=headers)
        else:
            client.put(remote_path, local_path=local_file, headers=headers, resume=resumable)
    except BreakpointNotFoundError as e:
        raise click.ClickException(
            f"No suspended upload {upload_id} to resume, it is unknown or already finished"
        ) from e
    except ExhaustedRetriesError as e:
        log.error(str(e))
        if e.breakpoint is not None:
            click.echo(e.breakpoint.upload_id)
        raise click.ClickException(
            f"Upload suspended, continue with: upload --resume {e.breakpoint.upload_id if e.breakpoint else ''} "
            f"{local_file} {remote_path}"
        ) from e

    log.info("Upload finished!")
