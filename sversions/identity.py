"""
Row and column identity mapping between a sheet and its structural copy.

Sheet copies get fresh row and column ids. Columns are correlated by title
(falling back to position), rows by row number, which only holds right after
the copy while row order is unchanged.
"""

import logging
from typing import Any, Dict, Iterable, List, Set

logger = logging.getLogger(__name__)

SYSTEM_COLUMN_TITLES = frozenset(
    {"Modified By", "Modified Date", "Created By", "Created Date"}
)


def is_system_column(column: Dict[str, Any]) -> bool:
    """True for columns the service populates itself (audit columns)."""
    return bool(
        column.get("systemColumnType")
        or column.get("systemColumnId")
        or column.get("type") == "SYSTEM"
        or column.get("title") in SYSTEM_COLUMN_TITLES
    )


def identify_system_columns(columns: Iterable[Dict[str, Any]]) -> Set[Any]:
    system_column_ids = set()
    for column in columns:
        if is_system_column(column):
            system_column_ids.add(column.get("id"))
            logger.debug(
                "Identified system column: %s (%s)", column.get("title"), column.get("id")
            )
    return system_column_ids


def map_column_ids(
    source_columns: List[Dict[str, Any]], target_columns: List[Dict[str, Any]]
) -> Dict[Any, Any]:
    """
    Map source column ids to target column ids.

    The first target column with an identical title wins. Source columns left
    over are mapped to the target column at the same index; renamed or
    duplicated titles make this positional pass unreliable.
    """
    logger.info(
        "Mapping %d source columns to %d target columns",
        len(source_columns),
        len(target_columns),
    )
    column_id_map: Dict[Any, Any] = {}

    target_by_title: Dict[Any, Dict[str, Any]] = {}
    for column in target_columns:
        target_by_title.setdefault(column.get("title"), column)

    for source_column in source_columns:
        target_column = target_by_title.get(source_column.get("title"))
        if target_column is not None:
            column_id_map[source_column.get("id")] = target_column.get("id")

    for index, source_column in enumerate(source_columns):
        source_id = source_column.get("id")
        if source_id in column_id_map:
            continue
        if index < len(target_columns):
            target_id = target_columns[index].get("id")
            column_id_map[source_id] = target_id
            logger.info(
                "Mapped column by index fallback: %s (%s -> %s)",
                source_column.get("title"),
                source_id,
                target_id,
            )
        else:
            logger.warning(
                "Could not map column: %s (%s)", source_column.get("title"), source_id
            )

    logger.info(
        "Mapped %d of %d columns", len(column_id_map), len(source_columns)
    )
    return column_id_map


def map_row_ids(
    source_rows: List[Dict[str, Any]], target_rows: List[Dict[str, Any]]
) -> Dict[Any, Any]:
    """Map source row ids to target row ids by row number."""
    target_by_row_number = {
        row.get("rowNumber"): row.get("id")
        for row in target_rows
        if row.get("rowNumber") is not None
    }

    row_id_map: Dict[Any, Any] = {}
    for row in source_rows:
        target_id = target_by_row_number.get(row.get("rowNumber"))
        if target_id is not None:
            row_id_map[row.get("id")] = target_id

    logger.info("Mapped %d of %d rows", len(row_id_map), len(source_rows))
    return row_id_map
