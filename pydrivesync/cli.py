"""CLI interface for pydrivesync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .config import config
from .exceptions import DriveAPIError, DriveConfigError
from .output import OutputFormatter
from .sync import SyncService, SyncStateStore, build_engine

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> DriveClient:
    """Create a DriveClient honouring the global --token option."""
    return DriveClient(
        access_token=ctx.obj.get("token") or config.access_token, api_url=config.api_url
    )


@click.group()
@click.option(
    "--token", "-t", envvar="PYDRIVESYNC_ACCESS_TOKEN", help="Drive access token"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pydrivesync")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pydrivesync - Keep a local folder and a Drive folder in sync."""
    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pydrivesync").setLevel(logging.DEBUG)
    else:
        # Keep library debug/info messages out of normal command output
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    prompt="Enter your Drive access token",
    hide_input=True,
    help="Drive access token",
)
@click.option(
    "--root-folder-id",
    "-r",
    prompt="Enter the id of the remote folder to sync",
    help="Remote folder mirrored by the local root",
)
@click.option(
    "--local-root",
    "-l",
    prompt="Enter the local folder to sync",
    type=click.Path(file_okay=False),
    help="Local folder mirrored to the remote folder",
)
@click.pass_context
def init(ctx: Any, token: str, root_folder_id: str, local_root: str) -> None:
    """Initialize pydrivesync configuration.

    Stores the access token, remote folder id and local folder in
    ~/.config/pydrivesync/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        out.info("Validating access token...")
        try:
            with DriveClient(access_token=token, api_url=config.api_url) as client:
                client.list_children(root_folder_id)
            out.success("Access token and folder are valid")
        except DriveAPIError as e:
            out.error(f"Validation failed: {e}")
            if not click.confirm("Save configuration anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)

        local_path = Path(local_root).expanduser().absolute()
        config_path = config.save(
            access_token=token,
            root_folder_id=root_folder_id,
            local_root=str(local_path),
        )

        out.print_summary(
            "Initialization Complete",
            [
                ("Status", "Configuration saved successfully"),
                ("Config file", str(config_path)),
                ("Local folder", str(local_path)),
                ("Remote folder", root_folder_id),
            ],
        )

    except DriveConfigError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)


@main.command()
@click.argument("local", type=click.Path(file_okay=False), required=False)
@click.option("--remote-folder", "-r", help="Remote folder id (default: configured)")
@click.pass_context
def sync(ctx: Any, local: Optional[str], remote_folder: Optional[str]) -> None:
    """Run one full reconciliation pass.

    LOCAL: Local folder to sync (default: configured local root)

    Examples:
        pydrivesync sync                       # Configured folders
        pydrivesync sync ./docs -r 1AbCdEf     # Explicit pair
        pydrivesync --json sync                # Statistics as JSON
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        engine = build_engine(
            config,
            client=_make_client(ctx),
            local_root=Path(local) if local else None,
            root_folder_id=remote_folder,
        )
        if not engine.local_root.is_dir():
            out.error(f"Local folder does not exist: {engine.local_root}")
            ctx.exit(1)

        out.info(f"Local folder: {engine.local_root}")
        out.info(f"Remote folder: {engine.root_folder_id}")

        stats = engine.sync_all()

        if out.json_output:
            out.output_json(stats)
        else:
            out.print_summary(
                "Sync Complete",
                [
                    ("Uploaded", f"{stats['uploads']} files"),
                    ("Downloaded", f"{stats['downloads']} files"),
                    ("Deleted locally", f"{stats['deletes_local']} entries"),
                    ("Deleted remotely", f"{stats['deletes_remote']} entries"),
                    ("Folders created", str(stats["folders_created"])),
                    ("Errors", str(stats["errors"])),
                ],
            )

        if stats["errors"] > 0:
            ctx.exit(1)

    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    except DriveAPIError as e:
        out.error(f"API error: {e}")
        ctx.exit(1)


@main.command()
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Seconds between reconciliation passes (default: 30)",
)
@click.option(
    "--full-listing-interval",
    type=float,
    default=None,
    help="Seconds between remote root listing checks (default: 600)",
)
@click.option(
    "--debounce",
    type=float,
    default=None,
    help="Seconds a changed file must stay quiet before syncing (default: 0.5)",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of parallel workers for triggered syncs (default: 4)",
)
@click.pass_context
def run(
    ctx: Any,
    interval: Optional[float],
    full_listing_interval: Optional[float],
    debounce: Optional[float],
    workers: Optional[int],
) -> None:
    """Keep the folders in sync until interrupted.

    Watches the local folder for changes and polls the remote folder
    periodically. Stop with Ctrl+C.
    """
    out: OutputFormatter = ctx.obj["out"]

    if not ctx.obj.get("verbose"):
        logging.getLogger("pydrivesync").setLevel(logging.INFO)

    try:
        service = SyncService.from_config(
            config,
            client=_make_client(ctx),
            debounce_seconds=debounce,
            full_listing_interval=full_listing_interval,
            reconcile_interval=interval,
            max_workers=workers,
        )
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    out.info(f"Syncing {service.engine.local_root} <-> {service.engine.root_folder_id}")
    out.info("Press Ctrl+C to stop")
    service.run_forever()
    out.success("Sync service stopped")


@main.command()
@click.argument("local", type=click.Path(file_okay=False), required=False)
@click.pass_context
def status(ctx: Any, local: Optional[str]) -> None:
    """Show configuration and the persisted sync baseline.

    LOCAL: Local folder whose state to show (default: configured local root)
    """
    out: OutputFormatter = ctx.obj["out"]

    local_root = Path(local) if local else config.local_root
    if local_root is None:
        out.error("Local folder not configured.")
        out.info("Run 'pydrivesync init' to configure pydrivesync")
        ctx.exit(1)

    local_root = Path(local_root).expanduser().absolute()
    state_path = local_root / config.state_file_name
    baseline = SyncStateStore(state_path).load()

    rows = [
        {"folder": folder, "entries": len(names)}
        for folder, names in sorted(baseline.items())
    ]

    if out.json_output:
        out.output_json(
            {
                "local_root": str(local_root),
                "root_folder_id": config.root_folder_id,
                "state_file": str(state_path),
                "folders": {folder: sorted(names) for folder, names in baseline.items()},
            }
        )
        return

    out.print_summary(
        "Sync Status",
        [
            ("Local folder", str(local_root)),
            ("Remote folder", config.root_folder_id or "(not configured)"),
            ("State file", str(state_path)),
            ("Tracked folders", str(len(baseline))),
        ],
    )
    if rows:
        out.output_table(rows, ["folder", "entries"], {"folder": "Folder", "entries": "Entries"})
    else:
        out.info("No sync state recorded yet.")


@main.command("reset-state")
@click.argument("local", type=click.Path(file_okay=False), required=False)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset_state(ctx: Any, local: Optional[str], yes: bool) -> None:
    """Delete the persisted sync baseline.

    The next pass then treats every entry as new: nothing is deleted,
    and entries missing on either side are transferred again.
    """
    out: OutputFormatter = ctx.obj["out"]

    local_root = Path(local) if local else config.local_root
    if local_root is None:
        out.error("Local folder not configured.")
        ctx.exit(1)

    state_path = Path(local_root).expanduser().absolute() / config.state_file_name
    if not yes and not click.confirm(f"Delete sync state {state_path}?", default=False):
        out.warning("Reset cancelled.")
        ctx.exit(1)

    try:
        cleared = SyncStateStore(state_path).clear()
    except OSError as e:
        out.error(f"Failed to delete sync state: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json({"cleared": cleared, "state_file": str(state_path)})
    elif cleared:
        out.success(f"Sync state cleared: {state_path}")
    else:
        out.info("No sync state to clear.")
