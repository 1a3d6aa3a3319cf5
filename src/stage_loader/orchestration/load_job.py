"""
End-to-end load of a batch of staged files into one table.

A load request is processed as:

1. keep only the staged keys matching the table's ``data_pattern``
2. build the manifest and upload it next to the data
3. resolve COPY credentials for this load
4. run the table's strategy in one warehouse transaction
5. delete the manifest, and the loaded data files unless they are kept

Storage failures in step 2 happen before any transaction is opened.
Cleanup failures are logged and never change the outcome of the load.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from stage_loader.io.loader.models import LoadResult, LoaderError, TableManifest
from stage_loader.io.loader.observations import ObservationSink
from stage_loader.io.loader.strategies import load_table
from stage_loader.io.loader.transaction import Connector
from stage_loader.io.storage.credentials import CredentialSet, resolve_credentials
from stage_loader.io.storage.manifest import (
    UploadedManifest,
    build_manifest,
    upload_manifest,
)
from stage_loader.io.storage.s3_store import BlobStore
from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)

CredentialProvider = Callable[[], CredentialSet]


@dataclass(frozen=True)
class LoadRequest:
    bucket: str
    file_keys: Tuple[str, ...]
    table_manifest: TableManifest
    manifest_bucket: Optional[str] = None

    def selected_keys(self) -> Tuple[str, ...]:
        return tuple(k for k in self.file_keys if self.table_manifest.matches(k))


@dataclass
class CleanupReport:
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def _delete_quietly(
    store: BlobStore, bucket: str, key: str, report: CleanupReport
) -> None:
    try:
        store.delete(bucket, key)
        report.deleted.append(f"s3://{bucket}/{key}")
    except Exception as exc:
        report.failed.append(f"s3://{bucket}/{key}")
        logger.warning(
            "storage.cleanup.failed", bucket=bucket, key=key, error=str(exc)
        )


def load_staged_files(
    request: LoadRequest,
    *,
    store: BlobStore,
    credential_provider: Optional[CredentialProvider] = None,
    connector: Optional[Connector] = None,
    observations: Optional[ObservationSink] = None,
    keep_files: bool = False,
) -> LoadResult:
    """
    Load ``request.file_keys`` into ``request.table_manifest.table``.

    Args:
        request: Bucket, staged keys and table manifest
        store: Object storage used for the manifest and cleanup
        credential_provider: Returns COPY credentials; called once per load.
            Defaults to the boto3 provider chain.
        connector: Warehouse connection factory
        observations: Sink for import/commit/rollback observations
        keep_files: Keep the staged data files after a successful load

    Returns:
        LoadResult of the warehouse load, or a skipped result (no statements)
        when no staged key belongs to the table

    Raises:
        StorageError: Manifest upload failed; nothing was executed
        LoaderError: Any configuration, statement or commit failure
    """
    table_manifest = request.table_manifest
    keys = request.selected_keys()
    log = logger.bind(table=table_manifest.table, bucket=request.bucket)

    if not keys:
        log.info(
            "load.skipped", reason="no_matching_files", offered=len(request.file_keys)
        )
        return LoadResult(
            table=table_manifest.table,
            strategy=table_manifest.strategy.value,
            statement_count=0,
            duration_ms=0.0,
            execution_id="",
            file_count=0,
            success=True,
        )

    manifest_bucket = request.manifest_bucket or request.bucket
    manifest = build_manifest(request.bucket, keys)
    uploaded: UploadedManifest = upload_manifest(store, manifest_bucket, manifest)
    log.info("load.started", files=len(keys), manifest_url=uploaded.url)

    cleanup = CleanupReport()
    try:
        credentials = (credential_provider or resolve_credentials)()
        result = load_table(
            credentials,
            uploaded.url,
            table_manifest,
            connector=connector,
            observations=observations,
        )
    except LoaderError as exc:
        log.error("load.failed", error=str(exc), error_type=type(exc).__name__)
        raise
    finally:
        _delete_quietly(store, manifest_bucket, uploaded.key, cleanup)

    result.file_count = len(keys)
    if not keep_files:
        for key in keys:
            _delete_quietly(store, request.bucket, key, cleanup)

    log.info(
        "load.completed",
        files=len(keys),
        execution_id=result.execution_id,
        duration_ms=result.duration_ms,
        cleaned_up=len(cleanup.deleted),
        cleanup_failures=len(cleanup.failed),
    )
    return result

