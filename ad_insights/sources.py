"""
Data sources for advertising performance rows.

A data source delivers a loosely-typed row array per logical table
(Daily, AdGroups, SearchTerms). Rows may miss fields and carry numbers
as strings; typing happens downstream in the pipeline.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ad_insights.exceptions import SourceUnavailableError
from ad_insights.schema.models import display_name

logger = logging.getLogger(__name__)

DEFAULT_TABLES = ("Daily", "AdGroups", "SearchTerms")


@dataclass(frozen=True)
class DataSourceInfo:
    """A selectable logical table."""
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


def _table_display_name(table: str) -> str:
    # "SearchTerms" -> "Search Terms"
    spaced = "".join(f" {c}" if c.isupper() and i else c for i, c in enumerate(table))
    return display_name(spaced)


def validate_payload(source: str, payload: Any) -> List[Any]:
    """
    Check that a fetch returned a row array.

    Raises:
        SourceUnavailableError: If the payload is not a list
    """
    if not isinstance(payload, list):
        raise SourceUnavailableError(
            source,
            f"Data source '{source}' returned {type(payload).__name__}, expected a list of rows",
        )
    return payload


class DataSource(ABC):
    """Abstract base for row sources."""

    def __init__(self, tables: Sequence[str] = DEFAULT_TABLES):
        self.tables = list(tables)

    def list_tables(self) -> List[DataSourceInfo]:
        """Logical tables available for selection."""
        return [DataSourceInfo(id=t, name=_table_display_name(t)) for t in self.tables]

    def fetch_rows(self, table: str) -> List[Any]:
        """
        Fetch the raw rows of one table.

        Raises:
            SourceUnavailableError: Unknown table, failed fetch, or a
                payload that is not a list
        """
        if table not in self.tables:
            raise SourceUnavailableError(table, f"Unknown data source: {table}")
        try:
            payload = self._fetch(table)
        except SourceUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch '{table}': {e}")
            raise SourceUnavailableError(table, f"Failed to fetch '{table}': {e}") from e

        rows = validate_payload(table, payload)
        logger.info(f"Fetched {len(rows)} rows from '{table}'")
        return rows

    @abstractmethod
    def _fetch(self, table: str) -> Any:
        """Return the raw payload for a table."""
        pass


class InMemoryDataSource(DataSource):
    """Rows held in memory, keyed by table. Useful for tests and notebooks."""

    def __init__(self, data: Dict[str, Any], tables: Optional[Sequence[str]] = None):
        super().__init__(tables if tables is not None else list(data))
        self.data = data

    def _fetch(self, table: str) -> Any:
        if table not in self.data:
            raise SourceUnavailableError(table, f"No data loaded for '{table}'")
        return self.data[table]


class JsonFileDataSource(DataSource):
    """
    Reads `<table>.json` files from a directory.

    Each file must contain a JSON array of row objects.
    """

    def __init__(self, directory: Union[str, Path], tables: Sequence[str] = DEFAULT_TABLES):
        super().__init__(tables)
        self.directory = Path(directory)

    def path_for(self, table: str) -> Path:
        return self.directory / f"{table}.json"

    def _fetch(self, table: str) -> Any:
        path = self.path_for(table)
        if not path.exists():
            raise SourceUnavailableError(table, f"Data file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
