"""CLI interface for journalsync."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import create_remote_store, delete_entry, init_client, put_entry
from .config import BACKENDS, CloudConfig, ConfigManager
from .exceptions import ConnectivityError, JournalSyncError
from .models import Entry
from .output import OutputFormatter
from .stores.filesystem import JsonEntryStore
from .sync.context import SyncContext
from .sync.engine import SyncPipeline
from .sync.index_store import IndexStoreAdapter
from .utils import (
    encode_html_entities,
    format_journal_date,
    format_millis,
    generate_id_from_date,
    now_millis,
    parse_journal_date,
    validate_entry_id,
    validate_journal_date,
)

logger = logging.getLogger(__name__)


def _open_context(ctx: Any) -> SyncContext:
    """Load the configuration and connect to the remote store."""
    manager: ConfigManager = ctx.obj["config_manager"]
    config = manager.load()
    logger.debug(f"Using configuration from {manager.get_config_path()}")
    sync_ctx = init_client(config)
    ctx.call_on_close(sync_ctx.close)
    return sync_ctx


def _fail(ctx: Any, message: str) -> None:
    out: OutputFormatter = ctx.obj["out"]
    out.error(message)
    ctx.exit(1)


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="JOURNALSYNC_CONFIG_DIR",
    help="Directory holding config.json (default: ~/.config/journalsync)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    config_dir: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """journalsync - Sync journal entries with cloud storage."""
    ctx.ensure_object(dict)
    ctx.obj["config_manager"] = ConfigManager(config_dir)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("journalsync").setLevel(logging.DEBUG)
        # Keep transport libraries readable
        for name in ("botocore", "boto3", "urllib3", "httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--backend",
    type=click.Choice(BACKENDS),
    default="s3",
    show_default=True,
    help="Remote store backend",
)
@click.option("--aws-access", help="AWS access key ID")
@click.option("--aws-secret", help="AWS secret access key")
@click.option("--aws-region", help="AWS region")
@click.option("--aws-bucket", help="S3 bucket name")
@click.option("--http-url", help="Base URL for the http backend")
@click.option("--http-token", help="Bearer token for the http backend")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    help="Directory for the local index and entries",
)
@click.pass_context
def init(
    ctx: Any,
    backend: str,
    aws_access: Optional[str],
    aws_secret: Optional[str],
    aws_region: Optional[str],
    aws_bucket: Optional[str],
    http_url: Optional[str],
    http_token: Optional[str],
    data_dir: Optional[str],
) -> None:
    """Configure cloud sync and bootstrap the local master index.

    Stores the configuration in ~/.config/journalsync/config.json.
    """
    out: OutputFormatter = ctx.obj["out"]
    manager: ConfigManager = ctx.obj["config_manager"]

    if backend == "s3":
        aws_access = aws_access or click.prompt("AWS access key ID")
        aws_secret = aws_secret or click.prompt(
            "AWS secret access key", hide_input=True
        )
        aws_region = aws_region or click.prompt("AWS region")
        aws_bucket = aws_bucket or click.prompt("S3 bucket")
    else:
        http_url = http_url or click.prompt("Base URL")

    config = CloudConfig(
        backend=backend,
        aws_access=aws_access,
        aws_secret=aws_secret,
        aws_region=aws_region,
        aws_bucket=aws_bucket,
        http_url=http_url,
        http_token=http_token,
        data_dir=data_dir,
    )

    try:
        remote = create_remote_store(config)
        out.info("Validating remote store access...")
        try:
            remote.list_probe(max_keys=1)
            out.success("✓ Remote store is reachable")
        except ConnectivityError as e:
            out.error(f"Remote store validation failed: {e}")
            if not click.confirm("Save configuration anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)

        manager.save(config)
        created = IndexStoreAdapter(config.data_path, remote).bootstrap_local()
    except JournalSyncError as e:
        _fail(ctx, f"Initialization failed: {e}")
        return

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(manager.get_config_path())),
            ("Data directory", str(config.data_path)),
            ("Local index", "created" if created else "already present"),
        ],
    )


@main.command()
@click.option("--dry-run", is_flag=True, help="Show what would be synced")
@click.pass_context
def sync(ctx: Any, dry_run: bool) -> None:
    """Run a full bidirectional sync of the master index."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        sync_ctx = _open_context(ctx)
        pipeline = SyncPipeline(sync_ctx, output=out)
        merged = pipeline.run(dry_run=dry_run)
    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
        return
    except JournalSyncError as e:
        _fail(ctx, f"Sync failed: {e}")
        return

    if out.json_output:
        out.output_json(
            {"dry_run": dry_run, "entries": len(merged), "stats": pipeline.last_stats}
        )


@main.command()
@click.argument("source", type=click.File("r"), required=False)
@click.option("--id", "entry_id", help="Entry ID (default: derived from --date)")
@click.option(
    "--date",
    help='Journal date like "Feb 27, 2018 at 15:14:10" (default: now)',
)
@click.option("--content", help="Entry content (default: read SOURCE or stdin)")
@click.option("--raw", is_flag=True, help="Do not HTML-encode the content")
@click.pass_context
def put(
    ctx: Any,
    source: Optional[Any],
    entry_id: Optional[str],
    date: Optional[str],
    content: Optional[str],
    raw: bool,
) -> None:
    """Create or replace an entry and push it to the cloud.

    Content is taken from --content, the SOURCE file, or stdin.
    """
    out: OutputFormatter = ctx.obj["out"]

    if content is None:
        stream = source or sys.stdin
        content = stream.read()
    date = date or format_journal_date()

    try:
        validate_journal_date(date)
        entry_id = entry_id or generate_id_from_date(date)
        validate_entry_id(entry_id)

        entry = Entry(
            id=entry_id,
            date=date,
            content=content if raw else encode_html_entities(content),
            timestamp=parse_journal_date(date) or 0,
            last_modified=now_millis(),
        )

        sync_ctx = _open_context(ctx)
        if sync_ctx.local_store.get(entry_id) is None:
            sync_ctx.local_store.create(entry_id, entry)
        else:
            sync_ctx.local_store.update(entry_id, entry)
        merged = put_entry(sync_ctx, entry)
    except JournalSyncError as e:
        _fail(ctx, f"Put failed: {e}")
        return

    record = merged[entry_id]
    if record.last_modified != entry.last_modified:
        state = "deleted" if record.deleted else "edited"
        out.warning(
            f"Entry {entry_id} was {state} more recently on another device "
            f"({format_millis(record.last_modified)}); kept that version"
        )
        if out.json_output:
            out.output_json({"id": entry_id, "record": record.to_dict()})
        return

    if out.json_output:
        out.output_json(entry.to_dict())
    else:
        out.success(f"✓ Entry {entry_id} synced")


@main.command()
@click.argument("entry_id")
@click.pass_context
def delete(ctx: Any, entry_id: str) -> None:
    """Delete an entry locally and in the cloud."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        sync_ctx = _open_context(ctx)
        if sync_ctx.local_store.get(entry_id) is not None:
            sync_ctx.local_store.delete(entry_id)
        merged = delete_entry(sync_ctx, entry_id)
    except JournalSyncError as e:
        _fail(ctx, f"Delete failed: {e}")
        return

    if out.json_output:
        out.output_json({"id": entry_id, "record": merged[entry_id].to_dict()})
    else:
        out.success(f"✓ Entry {entry_id} deleted")


@main.command()
@click.option("--remote", is_flag=True, help="Show the remote index instead")
@click.option("--deleted", "-d", is_flag=True, help="Only show tombstones")
@click.pass_context
def index(ctx: Any, remote: bool, deleted: bool) -> None:
    """Show the master index."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        if remote:
            indexes = _open_context(ctx).indexes
            master_index = indexes.load_remote(create_missing=False)
        else:
            config = ctx.obj["config_manager"].load()
            master_index = IndexStoreAdapter(config.data_path, None).load_local()
    except JournalSyncError as e:
        _fail(ctx, f"Failed to load index: {e}")
        return

    records = sorted(master_index.items())
    if deleted:
        records = [(k, r) for k, r in records if r.deleted]

    if out.json_output:
        out.output_json({k: r.to_dict() for k, r in records})
        return

    if not records:
        out.info("Index is empty")
        return
    out.print_table(
        ["ID", "Last modified", "State"],
        [
            [k, format_millis(r.last_modified), "deleted" if r.deleted else "live"]
            for k, r in records
        ],
        title="Remote master index" if remote else "Local master index",
    )


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show configuration and local index status."""
    out: OutputFormatter = ctx.obj["out"]
    manager: ConfigManager = ctx.obj["config_manager"]

    try:
        config = manager.load()
    except JournalSyncError as e:
        _fail(ctx, str(e))
        return

    configured = manager.is_configured()
    adapter = IndexStoreAdapter(config.data_path, None)
    live = tombstones = 0
    index_state = "not initialized"
    if adapter.local_exists():
        try:
            records = adapter.load_local().values()
        except JournalSyncError as e:
            index_state = f"invalid ({e})"
        else:
            tombstones = sum(1 for r in records if r.deleted)
            live = len(records) - tombstones
            index_state = f"{live} live, {tombstones} deleted"

    target = (
        f"s3://{config.aws_bucket or '?'} ({config.aws_region or '?'})"
        if config.backend == "s3"
        else config.http_url or "?"
    )
    local_entries = len(JsonEntryStore(config.data_path).list_ids())

    out.print_summary(
        "journalsync status",
        [
            ("Configured", "yes" if configured else "no"),
            ("Config file", str(manager.get_config_path())),
            ("Backend", config.backend),
            ("Remote", target),
            ("Data directory", str(config.data_path)),
            ("Local index", index_state),
            ("Local entries", str(local_entries)),
        ],
    )


@main.group(name="config")
def config_group() -> None:
    """Manage the cloud configuration."""


@config_group.command(name="show")
@click.pass_context
def config_show(ctx: Any) -> None:
    """Show the configuration with secrets masked."""
    out: OutputFormatter = ctx.obj["out"]
    manager: ConfigManager = ctx.obj["config_manager"]
    try:
        config = manager.load()
    except JournalSyncError as e:
        _fail(ctx, str(e))
        return

    data = config.redacted()
    if out.json_output:
        out.output_json(data)
    else:
        out.print_summary(
            str(manager.get_config_path()),
            [(k, str(v)) for k, v in data.items()],
        )


@config_group.command(name="delete")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def config_delete(ctx: Any, yes: bool) -> None:
    """Delete the stored configuration."""
    out: OutputFormatter = ctx.obj["out"]
    manager: ConfigManager = ctx.obj["config_manager"]

    if not yes and not click.confirm("Delete the cloud configuration?", default=False):
        out.warning("Cancelled.")
        return
    if manager.delete():
        out.success("✓ Configuration deleted")
    else:
        out.info("No configuration to delete")


if __name__ == "__main__":
    main()
