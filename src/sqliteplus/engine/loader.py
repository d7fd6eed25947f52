"""
Named query catalog.

Each `<id>.yaml` (or `.yml`) file in a directory holds one QueryDefinition;
the file stem is the id the CLI and callers look it up by.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import yaml
from pydantic import ValidationError

from .binder import QueryBinder
from .models import QueryDefinition


logger = logging.getLogger(__name__)


class QueryLoader:
    """Enabled QueryDefinitions from one directory, keyed by file stem."""

    def __init__(self, queries_dir: Optional[str] = None):
        # Falls back to QUERY_DEFINITIONS_PATH; a missing directory gives an empty catalog
        if queries_dir is None:
            queries_dir = os.getenv("QUERY_DEFINITIONS_PATH")

        if queries_dir is None:
            raise ValueError(
                "No query catalog directory: pass queries_dir or set QUERY_DEFINITIONS_PATH"
            )

        self.queries_dir = Path(queries_dir)
        self.queries: Dict[str, QueryDefinition] = {}

        if not self.queries_dir.exists():
            logger.warning(f"Query catalog directory does not exist: {self.queries_dir}")
            return

        self._load_all_queries()

    def _catalog_files(self) -> List[Path]:
        return sorted(
            list(self.queries_dir.glob("*.yaml")) + list(self.queries_dir.glob("*.yml"))
        )

    def _load_all_queries(self):
        if not self.queries_dir.is_dir():
            logger.error(f"Query catalog path is a file, not a directory: {self.queries_dir}")
            return

        files = self._catalog_files()
        if not files:
            logger.warning(f"Query catalog {self.queries_dir} has no .yaml/.yml files")
            return

        logger.info(f"Reading query catalog {self.queries_dir} ({len(files)} files)")

        for path in files:
            query_id = path.stem
            if query_id in self.queries:
                raise ValueError(f"Duplicate query id '{query_id}' ({path.name})")
            try:
                with open(path, 'r') as f:
                    raw = yaml.safe_load(f)

                if not raw:
                    logger.warning(f"Ignoring {path.name}: no query definition")
                    continue

                definition = QueryDefinition(**raw)
            except ValidationError as e:
                logger.error(f"Query '{query_id}' in {path.name} is invalid: {e}")
                raise
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Cannot read query '{query_id}' from {path.name}: {e}")
                raise

            if not definition.enabled:
                logger.info(f"Query '{query_id}' is disabled, not registered")
                continue

            self.queries[query_id] = definition
            logger.debug(
                f"Registered query '{query_id}' "
                f"(params: {', '.join(p.name for p in definition.parameters) or 'none'})"
            )

        logger.info(f"Query catalog ready: {len(self.queries)} queries")

    def get_query_by_id(self, query_id: str) -> Optional[QueryDefinition]:
        return self.queries.get(query_id)

    def get_all_queries(self) -> List[QueryDefinition]:
        return list(self.queries.values())

    def binder(self, query_id: str, values: Optional[Mapping[str, Any]] = None) -> QueryBinder:
        """
        QueryBinder for the query `query_id`, with `values` plus declared defaults.

        Raises:
            KeyError: no enabled query has this id
            ValueError: `values` names a parameter the query does not declare
        """
        definition = self.get_query_by_id(query_id)
        if definition is None:
            raise KeyError(f"Unknown query: {query_id}")
        return definition.binder(values)

    def reload(self):
        """Drop the catalog and read the directory again."""
        self.queries.clear()
        self._load_all_queries()
