"""
Object storage side of a load: manifests, COPY credentials and the S3 store.
"""

from .credentials import CredentialSet, censor, format_credentials, resolve_credentials
from .manifest import (
    Manifest,
    ManifestEntry,
    UploadedManifest,
    build_manifest,
    upload_manifest,
)
from .s3_store import BlobStore, S3BlobStore, s3_url

__all__ = [
    "BlobStore",
    "CredentialSet",
    "Manifest",
    "ManifestEntry",
    "S3BlobStore",
    "UploadedManifest",
    "build_manifest",
    "censor",
    "format_credentials",
    "resolve_credentials",
    "s3_url",
    "upload_manifest",
]
