"""Entry points called by the surrounding journal application.

These are the only calls the UI layer makes into the sync core::

    ctx = init_client(config, local_store)
    run_sync_pipeline(ctx)
    put_entry(ctx, entry)
    delete_entry(ctx, "feb.25.2018")
"""

import logging
import threading
from typing import Optional

from .config import CloudConfig
from .exceptions import ConfigError
from .models import Entry, MasterIndex
from .output import OutputFormatter
from .stores.base import LocalEntryStore, RemoteObjectStore
from .stores.filesystem import JsonEntryStore
from .stores.http import HttpObjectStore
from .stores.s3 import S3ObjectStore, create_s3_client
from .sync.context import SyncContext
from .sync.engine import SyncPipeline
from .sync.transactor import EntryTransactor

logger = logging.getLogger(__name__)


def create_remote_store(config: CloudConfig) -> RemoteObjectStore:
    """Build the remote object store selected by the configuration.

    Raises:
        ConfigError: If the configuration is invalid
    """
    config.validate()
    if config.backend == "s3":
        client = create_s3_client(
            region=config.aws_region,
            access_key=config.aws_access,
            secret_key=config.aws_secret,
        )
        return S3ObjectStore(bucket=config.aws_bucket, client=client)
    if config.backend == "http":
        return HttpObjectStore(base_url=config.http_url, token=config.http_token)
    raise ConfigError(f"Unknown backend {config.backend!r}")


def init_client(
    config: Optional[CloudConfig],
    local_store: Optional[LocalEntryStore] = None,
    remote: Optional[RemoteObjectStore] = None,
    sync: bool = False,
) -> SyncContext:
    """Create a sync context and verify the remote store is reachable.

    Args:
        config: Cloud configuration
        local_store: Local entry store (defaults to a JsonEntryStore in
            config.data_path)
        remote: Remote store to use instead of building one from config
        sync: Run a full sync pass right after connecting

    Returns:
        A ready-to-use SyncContext

    Raises:
        ConfigError: If the configuration is missing or invalid
        ConnectivityError: If the remote store cannot be listed
    """
    if config is None:
        raise ConfigError("No cloud configuration found")
    config.validate()

    if remote is None:
        remote = create_remote_store(config)
    remote.list_probe(max_keys=1)
    logger.debug("Remote store connectivity verified")

    if local_store is None:
        local_store = JsonEntryStore(config.data_path)

    ctx = SyncContext(config=config, remote=remote, local_store=local_store)
    if sync:
        run_sync_pipeline(ctx)
    return ctx


def run_sync_pipeline(
    ctx: SyncContext,
    output: Optional[OutputFormatter] = None,
    dry_run: bool = False,
    cancel_event: Optional[threading.Event] = None,
) -> MasterIndex:
    """Run a full bidirectional sync pass.

    Args:
        ctx: Sync context from init_client
        output: Formatter for progress and the summary (silent if None)
        dry_run: Only plan, change nothing
        cancel_event: When set, the pass stops before the next entry and
            raises SyncCancelledError without touching either index

    Returns:
        The merged master index
    """
    return SyncPipeline(ctx, output=output).run(
        dry_run=dry_run, cancel_event=cancel_event
    )


def put_entry(ctx: SyncContext, entry: Entry) -> MasterIndex:
    """Push an edited entry and merge the indexes.

    Returns:
        The merged master index
    """
    return EntryTransactor(ctx).put_entry(entry)


def delete_entry(ctx: SyncContext, entry_id: str) -> MasterIndex:
    """Delete an entry remotely and tombstone it.

    Returns:
        The merged master index
    """
    return EntryTransactor(ctx).delete_entry(entry_id)
