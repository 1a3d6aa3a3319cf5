import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LoaderError(Exception):
    """Raised when the stage loader encounters an error."""


class ConfigurationError(LoaderError):
    """Invalid table manifest, strategy or settings; raised before any SQL runs."""


class StorageError(LoaderError):
    """Object storage failure (manifest upload, staged file cleanup)."""


class StatementError(LoaderError):
    """A warehouse statement failed; the enclosing transaction is rolled back."""

    def __init__(self, message: str, kind: str = "", statement: str = ""):
        super().__init__(message)
        self.kind = kind
        # Already censored by the caller
        self.statement = statement


class CommitError(LoaderError):
    """The warehouse rejected the commit of an otherwise successful load."""


class LoadStrategy(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"
    APPEND = "append"


class StagingSelect(str, Enum):
    DISTINCT = "distinct"


KEYED_STRATEGIES = frozenset({LoadStrategy.MERGE, LoadStrategy.APPEND})


class TableManifest(BaseModel):
    """Describes how staged files are loaded into one warehouse table."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str = Field(..., min_length=1, description="Target warehouse table")
    connection_url: Optional[str] = Field(
        None, description="Warehouse DSN; falls back to the configured warehouse"
    )
    pk_columns: Tuple[str, ...] = Field(
        default=(), description="Key columns, required for merge and append"
    )
    strategy: LoadStrategy = Field(LoadStrategy.MERGE, description="Load strategy")
    columns: Tuple[str, ...] = Field(default=(), description="Columns to COPY into")
    options: Tuple[str, ...] = Field(
        default=(), description="COPY option tokens, in order"
    )
    staging_select: Optional[Union[StagingSelect, str]] = Field(
        None,
        description="SELECT template using {{table}}, 'distinct', or unset",
    )
    data_pattern: Optional[str] = Field(
        None, description="Regex selecting the staged keys that belong to this table"
    )

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("staging_select", mode="before")
    @classmethod
    def _parse_staging_select(cls, value):
        if isinstance(value, str) and value.strip().lower() == StagingSelect.DISTINCT.value:
            return StagingSelect.DISTINCT
        return value

    @field_validator("data_pattern")
    @classmethod
    def _compile_data_pattern(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"Invalid data_pattern {value!r}: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _require_keys(self) -> "TableManifest":
        if self.strategy in KEYED_STRATEGIES and not self.pk_columns:
            raise ValueError(
                f"pk_columns is required for the {self.strategy.value} strategy"
            )
        return self

    def matches(self, key: str) -> bool:
        """True when ``key`` belongs to this table (always, without a data_pattern)."""
        if self.data_pattern is None:
            return True
        return re.search(self.data_pattern, key) is not None


@dataclass(frozen=True)
class Statement:
    """One SQL statement ready for execution; ``sql`` may embed credentials."""

    kind: str
    sql: str

    def __str__(self) -> str:
        from stage_loader.io.storage.credentials import censor

        return censor(self.sql)


@dataclass
class LoadResult:
    """Structured response for a single table load."""

    table: str
    strategy: str
    statement_count: int
    duration_ms: float
    execution_id: str
    manifest_url: Optional[str] = None
    file_count: int = 0
    success: bool = True
