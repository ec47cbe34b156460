"""CLI interface for vaultsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .auth import TokenManager
from .cli_progress import SyncProgressDisplay
from .config import CONFIG_FILE, Config
from .exceptions import ConfigError, VaultSyncError
from .models import RemoteObject
from .output import OutputFormatter
from .sync import (
    ConflictInfo,
    ConflictResolution,
    LocalTree,
    SyncEngine,
    SyncResult,
    SyncStatus,
)

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--vault",
    "vault_path",
    envvar="VAULTSYNC_VAULT_PATH",
    type=click.Path(file_okay=False, path_type=Path),
    help="Local vault directory",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Config file (default: {CONFIG_FILE})",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyvaultsync")
@click.pass_context
def main(
    ctx: Any,
    vault_path: Optional[Path],
    config_file: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """vaultsync - Push & pull a local vault to and from Google Drive."""
    ctx.ensure_object(dict)
    out = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["out"] = out

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("vaultsync").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)

    try:
        config = Config.load(config_file)
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    if vault_path:
        config.vault_path = vault_path
    ctx.obj["config"] = config


def _build_engine(ctx: Any) -> SyncEngine:
    """Create a SyncEngine from the loaded configuration."""
    config: Config = ctx.obj["config"]
    if config.vault_path is None:
        raise ConfigError("No vault path configured. Use --vault or run 'vaultsync init'.")
    if not config.vault_path.is_dir():
        raise ConfigError(f"Vault directory does not exist: {config.vault_path}")
    if not config.vault_id:
        raise ConfigError("No remote vault configured. Run 'vaultsync init'.")

    tokens = TokenManager(config.refresh_token, config.refresh_url)
    client = DriveClient(tokens.get_token)
    ctx.call_on_close(client.close)
    tree = LocalTree(config.vault_path, use_trash=config.settings.use_trash)
    return SyncEngine(tree, client, config.vault_id, config.settings)


def _conflict_prompter(out: OutputFormatter, keep: Optional[str]):
    """Build the conflict callback used by push and pull.

    With ``keep`` set every conflict is resolved the same way without
    asking. Otherwise the user is asked per file; answering ``cancel``
    aborts the whole operation without changes.
    """

    def resolve(conflicts: list[ConflictInfo]) -> Optional[dict[str, ConflictResolution]]:
        if keep:
            return {c.path: ConflictResolution(keep) for c in conflicts}

        out.warning(f"{len(conflicts)} file(s) changed on both sides:")
        resolutions: dict[str, ConflictResolution] = {}
        for conflict in conflicts:
            if conflict.remote_deleted:
                detail = "deleted remotely, modified locally"
            else:
                detail = (
                    f"local {conflict.local_modified_time or '?'}, "
                    f"remote {conflict.remote_modified_time or '?'}"
                )
            choice = click.prompt(
                f"  {conflict.path} ({detail}) - keep",
                type=click.Choice(["local", "remote", "cancel"]),
                default="local",
                err=True,
            )
            if choice == "cancel":
                return None
            resolutions[conflict.path] = ConflictResolution(choice)
        return resolutions

    return resolve


def _report(ctx: Any, result: SyncResult) -> None:
    """Print a sync result and set the exit code."""
    out: OutputFormatter = ctx.obj["out"]

    if out.json_output:
        out.output_json(result.to_dict())
    elif result.status == SyncStatus.BLOCKED:
        out.warning("Remote has newer changes. Run 'vaultsync pull' before pushing.")
    elif result.status == SyncStatus.CANCELLED:
        out.warning("Cancelled. No files were changed.")
    elif result.status == SyncStatus.NOTHING_TO_PULL:
        out.info("No remote data found. Nothing to pull.")
    elif result.status == SyncStatus.UP_TO_DATE:
        out.success("Already up to date.")
    else:
        items = [
            ("Uploaded", str(len(result.uploaded))),
            ("Downloaded", str(len(result.downloaded))),
            ("Deleted locally", str(len(result.deleted))),
            ("Untracked", str(len(result.untracked))),
            ("Skipped", str(len(result.skipped))),
        ]
        if result.renamed:
            items.append(("Renamed remote", str(len(result.renamed))))
        if result.backed_up:
            items.append(("Conflict backups", str(len(result.backed_up))))
        out.print_summary(f"{result.operation} complete", items)
        for path, error in sorted(result.failures.items()):
            out.warning(f"Skipped {path}: {error}")

    if result.failures or result.status == SyncStatus.BLOCKED:
        ctx.exit(1)


def _run_sync(ctx: Any, operation: str, keep: Optional[str] = None) -> None:
    out: OutputFormatter = ctx.obj["out"]
    try:
        engine = _build_engine(ctx)
        resolve = _conflict_prompter(out, keep)
        if out.quiet or out.json_output:
            result = _dispatch(engine, operation, resolve, None)
        else:
            with SyncProgressDisplay() as display:
                result = _dispatch(engine, operation, resolve, display.create_tracker())
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    _report(ctx, result)


def _dispatch(engine: SyncEngine, operation: str, resolve, tracker) -> SyncResult:
    if operation == "push":
        return engine.push(resolve_conflicts=resolve, tracker=tracker)
    if operation == "pull":
        return engine.pull(resolve_conflicts=resolve, tracker=tracker)
    if operation == "push_all":
        return engine.push_all(tracker=tracker)
    return engine.pull_all(tracker=tracker)


_keep_option = click.option(
    "--keep",
    type=click.Choice(["local", "remote"]),
    default=None,
    help="Resolve every conflict this way instead of asking",
)


@main.command()
@_keep_option
@click.pass_context
def push(ctx: Any, keep: Optional[str]) -> None:
    """Upload local changes to Google Drive.

    Refuses to run when the remote has changes this device has not pulled.
    """
    _run_sync(ctx, "push", keep)


@main.command()
@_keep_option
@click.pass_context
def pull(ctx: Any, keep: Optional[str]) -> None:
    """Download remote changes into the vault."""
    _run_sync(ctx, "pull", keep)


@main.command("push-all")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def push_all(ctx: Any, yes: bool) -> None:
    """Upload the whole vault, replacing remote versions that differ.

    Replaced remote versions are kept under a timestamped, untracked name.
    """
    out: OutputFormatter = ctx.obj["out"]
    if not yes and not click.confirm(
        "Upload all local files, replacing remote versions?", default=False
    ):
        out.warning("Full push cancelled.")
        return
    _run_sync(ctx, "push_all")


@main.command("pull-all")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def pull_all(ctx: Any, yes: bool) -> None:
    """Download every remote file, backing up local files that differ."""
    out: OutputFormatter = ctx.obj["out"]
    if not yes and not click.confirm(
        "Download all remote files, overwriting local versions?", default=False
    ):
        out.warning("Full pull cancelled.")
        return
    _run_sync(ctx, "pull_all")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show what a sync would do, without changing anything."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        diff = _build_engine(ctx).compute_diff()
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(diff.to_dict())
        return
    if diff.is_empty:
        out.success("Everything is in sync.")
        return

    rows = (
        [{"change": "upload", "path": p} for p in diff.to_upload]
        + [{"change": "download", "path": p} for p in diff.to_download]
        + [{"change": "conflict", "path": c.path} for c in diff.conflicts]
        + [{"change": "deleted locally", "path": p} for p in diff.deleted_locally]
        + [{"change": "deleted remotely", "path": p} for p in diff.deleted_remotely]
    )
    out.output_table(rows, ["change", "path"], {"change": "Change", "path": "Path"})


def _object_rows(objects: list[RemoteObject]) -> list[dict[str, Any]]:
    return [
        {"id": obj.id, "name": obj.name, "modified": obj.modified_time}
        for obj in objects
    ]


def _show_objects(out: OutputFormatter, objects: list[RemoteObject], empty: str) -> None:
    if out.json_output:
        out.output_json([obj.to_dict() for obj in objects])
    elif not objects:
        out.info(empty)
    else:
        out.output_table(
            _object_rows(objects),
            ["id", "name", "modified"],
            {"id": "ID", "name": "Name", "modified": "Modified"},
        )


@main.command()
@click.option("--restore", "restore_ids", multiple=True, help="Restore object by ID")
@click.option("--restore-all", is_flag=True, help="Restore every untracked object")
@click.option("--delete", "delete_ids", multiple=True, help="Delete object by ID")
@click.pass_context
def untracked(
    ctx: Any,
    restore_ids: tuple[str, ...],
    restore_all: bool,
    delete_ids: tuple[str, ...],
) -> None:
    """List, restore or delete remote files not tracked by the snapshot."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        engine = _build_engine(ctx)
        objects = engine.get_untracked_files()

        if restore_ids or restore_all:
            selected = [o for o in objects if restore_all or o.id in restore_ids]
            restored = engine.restore_untracked_files(selected)
            out.success(f"Restored {len(restored)} file(s)")
            for path in restored:
                out.info(f"  {path}")
        if delete_ids:
            deleted = engine.delete_untracked_files(list(delete_ids))
            out.success(f"Deleted {deleted} file(s)")
        if not (restore_ids or restore_all or delete_ids):
            _show_objects(out, objects, "No untracked files.")
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.option("--delete", "delete_all", is_flag=True, help="Delete them remotely")
@click.pass_context
def excluded(ctx: Any, delete_all: bool) -> None:
    """List (or delete) remote files matching the exclude patterns."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        engine = _build_engine(ctx)
        objects = engine.get_excluded_remote_files()
        if not delete_all:
            _show_objects(out, objects, "No excluded files on the remote.")
            return
        deleted = engine.delete_remote_files([o.id for o in objects])
        out.success(f"Deleted {deleted} excluded file(s)")
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.group()
def temp() -> None:
    """Temporary transfers that never touch the sync snapshots."""


@temp.command("upload")
@click.argument("path")
@click.pass_context
def temp_upload(ctx: Any, path: str) -> None:
    """Upload a vault file (relative PATH) to the temporary area."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        _build_engine(ctx).temp_upload(path)
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Uploaded {path} to temporary storage")


@temp.command("download")
@click.argument("path")
@click.pass_context
def temp_download(ctx: Any, path: str) -> None:
    """Download the temporary copy of a vault file (relative PATH)."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        _build_engine(ctx).temp_download(path)
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Downloaded {path} from temporary storage")


@temp.command("list")
@click.pass_context
def temp_list(ctx: Any) -> None:
    """List temporary files."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        objects = _build_engine(ctx).get_temp_files()
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    _show_objects(out, objects, "No temporary files.")


@temp.command("fetch")
@click.argument("file_ids", nargs=-1, required=True)
@click.pass_context
def temp_fetch(ctx: Any, file_ids: tuple[str, ...]) -> None:
    """Download temporary files by ID to their original paths."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        paths = _build_engine(ctx).download_temp_files(list(file_ids))
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Downloaded {len(paths)} file(s)")


@temp.command("delete")
@click.argument("file_ids", nargs=-1, required=True)
@click.pass_context
def temp_delete(ctx: Any, file_ids: tuple[str, ...]) -> None:
    """Delete temporary files by ID."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        deleted = _build_engine(ctx).delete_temp_files(list(file_ids))
    except VaultSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Deleted {deleted} file(s)")


@main.command()
@click.option(
    "--refresh-token",
    prompt="Refresh token",
    hide_input=True,
    help="Long-lived refresh token",
)
@click.option(
    "--refresh-url",
    prompt="Token endpoint URL",
    help="URL exchanging the refresh token for an access token",
)
@click.option(
    "--vault-path",
    prompt="Local vault directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--vault-name", default=None, help="Remote vault folder name")
@click.pass_context
def init(
    ctx: Any,
    refresh_token: str,
    refresh_url: str,
    vault_path: Path,
    vault_name: Optional[str],
) -> None:
    """Configure credentials and locate (or create) the remote vault folder.

    The vault folder lives inside a root folder named "obsidian".
    """
    out: OutputFormatter = ctx.obj["out"]
    config: Config = ctx.obj["config"]
    vault_name = vault_name or vault_path.resolve().name

    try:
        out.info("Fetching access token...")
        tokens = TokenManager(refresh_token, refresh_url)
        with DriveClient(tokens.get_token) as client:
            vault_id = client.ensure_vault_folder(vault_name)
    except VaultSyncError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    config.refresh_token = refresh_token
    config.refresh_url = refresh_url
    config.vault_path = vault_path
    config.vault_id = vault_id
    config.save()

    out.print_summary(
        "Initialization Complete",
        [
            ("Vault", str(vault_path)),
            ("Remote folder", f"obsidian/{vault_name}"),
            ("Vault ID", vault_id),
            ("Config file", str(config.config_file)),
        ],
    )


if __name__ == "__main__":
    main()
