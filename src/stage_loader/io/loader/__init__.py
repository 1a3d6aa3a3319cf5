"""
Transactional warehouse loader for staged files.

This package synthesizes the per-strategy SQL plans (merge, replace, append)
and executes each plan atomically in one warehouse transaction.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

_EXPORTS = {
    "CommitError": ".models",
    "ConfigurationError": ".models",
    "LoadResult": ".models",
    "LoadStrategy": ".models",
    "LoaderError": ".models",
    "StagingSelect": ".models",
    "Statement": ".models",
    "StatementError": ".models",
    "StorageError": ".models",
    "TableManifest": ".models",
    "InMemoryObservations": ".observations",
    "ObservationSink": ".observations",
    "append_table": ".strategies",
    "build_statements": ".strategies",
    "load_table": ".strategies",
    "merge_table": ".strategies",
    "replace_table": ".strategies",
    "execute": ".transaction",
    "run_in_transaction": ".transaction",
}

__all__ = sorted(_EXPORTS)

if TYPE_CHECKING:  # pragma: no cover - imported only for typing
    from .models import (
        CommitError,
        ConfigurationError,
        LoaderError,
        LoadResult,
        LoadStrategy,
        StagingSelect,
        Statement,
        StatementError,
        StorageError,
        TableManifest,
    )
    from .observations import InMemoryObservations, ObservationSink
    from .strategies import (
        append_table,
        build_statements,
        load_table,
        merge_table,
        replace_table,
    )
    from .transaction import execute, run_in_transaction


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = importlib.import_module(_EXPORTS[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module 'stage_loader.io.loader' has no attribute {name!r}")
