"""CLI interface for cloudmirror."""

import logging
import signal
import threading
from typing import Any, Optional

import click

from .api import DriveClient
from .cli_progress import run_sync_with_progress
from .config import config
from .exceptions import ConfigError, EnumerationError, PlanningError
from .models import RemoteContext
from .output import OutputFormatter
from .sync import RcloneSource, SyncEngine
from .sync.comparator import SyncPlan
from .utils import (
    DEFAULT_BATCH_DELAY,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SIZE_TOLERANCE,
    SUPPORTED_PROVIDERS,
    format_size,
    remote_name_for_user,
    to_kib,
)

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> DriveClient:
    """Create a DriveClient from global options, exiting on missing settings."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return DriveClient(
            api_url=ctx.obj["api_url"],
            token=ctx.obj["token"],
            company_id=ctx.obj["company"],
        )
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(1)


def _make_source(ctx: Any) -> RcloneSource:
    return RcloneSource(
        binary=config.rclone_binary,
        config_path=ctx.obj["rclone_config"] or config.rclone_config,
    )


def _make_context(remote: str, path: Optional[str]) -> RemoteContext:
    """Build a RemoteContext from a ``profile`` or ``profile:`` argument."""
    return RemoteContext(profile=remote.rstrip(":"), root_path=(path or "").strip("/"))


def _mb_to_bytes(value: Optional[int]) -> Optional[int]:
    return value * 1024 * 1024 if value is not None else None


def _plan_rows(plan: SyncPlan) -> list[dict[str, Any]]:
    rows = []
    for comparison in plan.diagnostics.folders + plan.diagnostics.root_files:
        rows.append(
            {
                "name": comparison.path,
                "type": "folder" if comparison.is_dir else "file",
                "remote": f"{to_kib(comparison.remote_size)} KB",
                "destination": (
                    "-"
                    if comparison.destination_size is None
                    else f"{to_kib(comparison.destination_size)} KB"
                ),
                "action": "sync" if comparison.selected else "skip",
                "reason": comparison.reason.value,
            }
        )
    return rows


@click.group()
@click.option(
    "--api-url", envvar="CLOUDMIRROR_API_URL", help="Destination store base URL"
)
@click.option("--token", "-t", envvar="CLOUDMIRROR_TOKEN", help="Access token")
@click.option("--company", "-c", envvar="CLOUDMIRROR_COMPANY_ID", help="Company id")
@click.option(
    "--rclone-config",
    envvar="RCLONE_CONFIG",
    type=click.Path(dir_okay=False),
    help="rclone config file holding the remote profiles",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="cloudmirror")
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    token: Optional[str],
    company: Optional[str],
    rclone_config: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """cloudmirror - Mirror cloud storage into a document store."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["token"] = token
    ctx.obj["company"] = company
    ctx.obj["rclone_config"] = rclone_config
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("cloudmirror").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--api-url", prompt="Destination store URL", help="Base URL")
@click.option(
    "--token", prompt="Access token", hide_input=True, help="Bearer access token"
)
@click.option("--company", prompt="Company id", help="Company id")
@click.option(
    "--rclone-config",
    default="",
    prompt="rclone config file (leave empty for rclone's default)",
    help="rclone config file",
)
@click.pass_context
def init(
    ctx: Any, api_url: str, token: str, company: str, rclone_config: str
) -> None:
    """Initialize cloudmirror configuration.

    Stores the destination settings in ~/.config/cloudmirror/config.json.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        config_path = config.save(
            api_url=api_url.rstrip("/"),
            token=token,
            company_id=company,
            rclone_config=rclone_config or None,
        )
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(config_path)),
        ],
    )


@main.command("remote-name")
@click.argument("email")
@click.option(
    "--provider",
    "-p",
    type=click.Choice(list(SUPPORTED_PROVIDERS)),
    default="dropbox",
    show_default=True,
    help="Storage provider",
)
@click.pass_context
def remote_name(ctx: Any, email: str, provider: str) -> None:
    """Print the rclone remote name used for EMAIL's account."""
    out: OutputFormatter = ctx.obj["out"]
    name = remote_name_for_user(email, provider)

    if out.json_output:
        out.output_json({"email": email, "provider": provider, "remote": name})
    else:
        click.echo(name)


@main.command()
@click.argument("remote")
@click.argument("path", required=False, default="")
@click.option("--recursive", "-r", is_flag=True, help="List the whole subtree")
@click.option("--dirs-only", is_flag=True, help="Only list directories")
@click.pass_context
def ls(ctx: Any, remote: str, path: str, recursive: bool, dirs_only: bool) -> None:
    """List entries of a remote.

    REMOTE: rclone remote profile name
    PATH: Path inside the remote (default: its root)
    """
    out: OutputFormatter = ctx.obj["out"]
    source = _make_source(ctx)
    context = _make_context(remote, path)

    try:
        entries = source.list(context, recursive=recursive, dirs_only=dirs_only)
    except (EnumerationError, PlanningError) as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            [
                {"path": e.path, "isDir": e.is_dir, "size": e.size}
                for e in entries
            ]
        )
        return

    if not entries:
        out.warning("No entries found")
        return

    out.output_table(
        [
            {
                "path": e.path,
                "type": "dir" if e.is_dir else "file",
                "size": "-" if e.is_dir else format_size(e.size),
            }
            for e in entries
        ],
        ["path", "type", "size"],
        {"path": "Path", "type": "Type", "size": "Size"},
    )
    out.info(f"{len(entries)} entries")


@main.command()
@click.argument("remote")
@click.argument("parent_id")
@click.option("--path", "-p", default="", help="Path inside the remote to mirror")
@click.option(
    "--tolerance",
    type=int,
    default=DEFAULT_SIZE_TOLERANCE,
    show_default=True,
    help="Size difference in bytes treated as unchanged",
)
@click.option("--round-kb", is_flag=True, help="Compare sizes rounded to KB")
@click.option(
    "--match-renamed",
    is_flag=True,
    help="Treat 'name-N' destination items as the same item",
)
@click.pass_context
def analyze(
    ctx: Any,
    remote: str,
    parent_id: str,
    path: str,
    tolerance: int,
    round_kb: bool,
    match_renamed: bool,
) -> None:
    """Compare a remote with a destination folder without changing anything.

    REMOTE: rclone remote profile name
    PARENT_ID: Destination folder id
    """
    out: OutputFormatter = ctx.obj["out"]
    context = _make_context(remote, path)

    with _make_client(ctx) as client:
        engine = SyncEngine(
            _make_source(ctx),
            client,
            output=out,
            tolerance=tolerance,
            round_to_kib=round_kb,
            match_renamed=match_renamed,
        )
        try:
            plan = engine.analyze(context, parent_id)
        except (EnumerationError, PlanningError) as e:
            out.error(f"Analysis failed: {e}")
            ctx.exit(1)
            return

    if out.json_output:
        data = plan.diagnostics.to_dict()
        data["foldersToCreate"] = list(plan.folders_to_create)
        data["filesToSync"] = [e.path for e in plan.files_to_sync]
        out.output_json(data)
        return

    out.output_table(
        _plan_rows(plan),
        ["name", "type", "remote", "destination", "action", "reason"],
        {
            "name": "Name",
            "type": "Type",
            "remote": "Remote",
            "destination": "Destination",
            "action": "Action",
            "reason": "Reason",
        },
        title=f"{context.remote_path()} -> {parent_id}",
    )
    for remote_path, name in plan.diagnostics.renamed_matches:
        out.warning(f"{remote_path} has a renamed counterpart '{name}'")
    out.info(plan.diagnostics.summary())
    out.info(
        f"{len(plan.folders_to_create)} folder(s) to create, "
        f"{len(plan.files_to_sync)} file(s) to transfer"
    )


@main.command()
@click.argument("remote")
@click.argument("parent_id")
@click.option("--path", "-p", default="", help="Path inside the remote to mirror")
@click.option(
    "--batch-size",
    "-b",
    type=click.IntRange(min=1),
    default=DEFAULT_BATCH_SIZE,
    show_default=True,
    help="Files transferred concurrently per batch",
)
@click.option(
    "--batch-delay",
    type=click.FloatRange(min=0),
    default=DEFAULT_BATCH_DELAY,
    show_default=True,
    help="Pause between batches in seconds",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Threads per batch (default: batch size)",
)
@click.option(
    "--tolerance",
    type=int,
    default=DEFAULT_SIZE_TOLERANCE,
    show_default=True,
    help="Size difference in bytes treated as unchanged",
)
@click.option("--round-kb", is_flag=True, help="Compare sizes rounded to KB")
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_RETRIES,
    show_default=True,
    help="Extra attempts per file for transient failures",
)
@click.option(
    "--max-file-size",
    type=click.IntRange(min=1),
    default=None,
    help="Skip files larger than this many MB",
)
@click.option(
    "--match-renamed",
    is_flag=True,
    help="Treat 'name-N' destination items as the same item",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be synced without syncing"
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def sync(
    ctx: Any,
    remote: str,
    parent_id: str,
    path: str,
    batch_size: int,
    batch_delay: float,
    workers: Optional[int],
    tolerance: int,
    round_kb: bool,
    retries: int,
    max_file_size: Optional[int],
    match_renamed: bool,
    dry_run: bool,
    no_progress: bool,
) -> None:
    """Mirror a remote into a destination folder.

    REMOTE: rclone remote profile name
    PARENT_ID: Destination folder id
    """
    out: OutputFormatter = ctx.obj["out"]
    context = _make_context(remote, path)
    cancel_event = threading.Event()

    def _handle_sigint(signum: int, frame: Any) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        out.warning("Stopping after the current batch (Ctrl+C again to abort)")

    previous_handler = signal.signal(signal.SIGINT, _handle_sigint)
    try:
        with _make_client(ctx) as client:
            engine = SyncEngine(
                _make_source(ctx),
                client,
                output=out,
                batch_size=batch_size,
                batch_delay=batch_delay,
                tolerance=tolerance,
                round_to_kib=round_kb,
                max_file_size=_mb_to_bytes(max_file_size),
                retries=retries,
                match_renamed=match_renamed,
                max_workers=workers,
            )
            result = run_sync_with_progress(
                engine,
                context,
                parent_id,
                dry_run=dry_run,
                cancel_event=cancel_event,
                show_progress=not (no_progress or out.quiet or out.json_output),
            )
    except KeyboardInterrupt:
        out.warning("Sync aborted by user")
        ctx.exit(130)
        return
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if out.json_output:
        out.output_json(result.to_dict())
    elif not result.aborted:
        out.print_summary(
            "Dry Run" if dry_run else "Sync Summary",
            [
                ("Result", result.message),
                ("Folders created", result.folders_created),
                ("Files transferred", result.files_processed),
                ("Files failed", result.files_failed),
            ],
        )

    if not result.success:
        ctx.exit(1)


@main.command("mirror-folders")
@click.argument("remote")
@click.argument("parent_id")
@click.option("--path", "-p", default="", help="Path inside the remote to mirror")
@click.pass_context
def mirror_folders(ctx: Any, remote: str, parent_id: str, path: str) -> None:
    """Recreate only the folder structure of a remote.

    REMOTE: rclone remote profile name
    PARENT_ID: Destination folder id
    """
    out: OutputFormatter = ctx.obj["out"]
    context = _make_context(remote, path)

    with _make_client(ctx) as client:
        engine = SyncEngine(_make_source(ctx), client, output=out)
        result = engine.create_folder_tree(context, parent_id)

    if out.json_output:
        out.output_json(result.to_dict())
    if not result.success:
        ctx.exit(1)


if __name__ == "__main__":
    main()
