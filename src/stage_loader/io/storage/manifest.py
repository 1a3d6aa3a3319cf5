"""
Warehouse load manifests.

A manifest lists every staged object a COPY command must ingest. It is built
fresh for each load, uploaded next to the staged data and referenced by URL
from the COPY statement.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from stage_loader.io.storage.s3_store import BlobStore, s3_url
from stage_loader.utils.logging import get_logger

logger = get_logger(__name__)

MANIFEST_SUFFIX = ".manifest"


@dataclass(frozen=True)
class ManifestEntry:
    url: str
    mandatory: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "mandatory": self.mandatory}


@dataclass(frozen=True)
class Manifest:
    entries: Tuple[ManifestEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {"entries": [entry.to_dict() for entry in self.entries]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class UploadedManifest:
    key: str
    url: str


def build_manifest(bucket: str, file_keys: Iterable[str]) -> Manifest:
    """
    Build a manifest with one mandatory entry per staged key.

    Examples:
        >>> build_manifest("data", ["a/1.tsv"]).to_dict()
        {'entries': [{'url': 's3://data/a/1.tsv', 'mandatory': True}]}
    """
    return Manifest(
        entries=tuple(ManifestEntry(url=s3_url(bucket, key)) for key in file_keys)
    )


def upload_manifest(
    store: BlobStore, bucket: str, manifest: Manifest
) -> UploadedManifest:
    """
    Upload ``manifest`` as UTF-8 JSON under a random ``<uuid>.manifest`` key.

    Storage errors propagate unchanged.
    """
    key = f"{uuid.uuid4()}{MANIFEST_SUFFIX}"
    url = store.put(bucket, key, manifest.to_json().encode("utf-8"))
    logger.info(
        "storage.manifest.uploaded",
        bucket=bucket,
        key=key,
        entries=len(manifest),
    )
    return UploadedManifest(key=key, url=url)
