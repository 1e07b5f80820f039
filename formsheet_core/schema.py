"""
Schema Manager - Header row lifecycle for the tabular store

The header row (row 1) defines the column order of every submission row.
``ensure_schema`` writes the canonical header when the store has none and
re-checks it once; any existing non-empty header is authoritative, so columns
added or renamed by hand are kept.
"""

import logging
from typing import Dict, List, Optional

from .errors import SchemaInvalidError
from .store import HeaderStyle, TabularStore

logger = logging.getLogger(__name__)

TIMESTAMP_LABEL = "Timestamp"

CANONICAL_SCHEMA: List[str] = [
    TIMESTAMP_LABEL,
    "Nom",
    "Prénom",
    "Email",
    "Téléphone",
    "Université",
    "Lien Facebook",
]

# Schema label -> submission record key
FIELD_MAPPING: Dict[str, str] = {
    TIMESTAMP_LABEL: "timestamp",
    "Nom": "nom",
    "Prénom": "prenom",
    "Email": "email",
    "Téléphone": "telephone",
    "Université": "universite",
    "Lien Facebook": "facebookLink",
}

# Submission record key -> schema label
LABEL_FOR_KEY: Dict[str, str] = {key: label for label, key in FIELD_MAPPING.items()}


def key_for_label(label: str) -> str:
    """Record key for a header label; unmapped labels are their own key."""
    return FIELD_MAPPING.get(label, label)


def label_for_key(key: str) -> str:
    """Header label for a record key; unmapped keys are their own label."""
    return LABEL_FOR_KEY.get(key, key)


def initialize_schema(
    store: TabularStore,
    style: Optional[HeaderStyle] = None,
    destructive: bool = True,
) -> None:
    """
    Write the canonical header row.

    Args:
        store: Target store
        style: Header presentation (defaults to ``HeaderStyle()``)
        destructive: Clear the whole grid first. When False only row 1 is
            rewritten, which keeps any data rows below a blank header.
    """
    style = style or HeaderStyle()
    store.write_schema(CANONICAL_SCHEMA, style=style, clear=destructive)
    logger.info(f"Headers initialized: {len(CANONICAL_SCHEMA)} columns")


def _heal(store: TabularStore, style: HeaderStyle, destructive_reset: bool) -> None:
    # A truly empty grid is always cleared; data rows below a blank header
    # are only wiped when destructive_reset is enabled.
    has_data = store.last_row_index() > 1
    if has_data and not destructive_reset:
        logger.warning("Header row is blank above existing data rows, rewriting row 1 only")
        initialize_schema(store, style, destructive=False)
    else:
        initialize_schema(store, style, destructive=True)


def ensure_schema(
    store: TabularStore,
    style: Optional[HeaderStyle] = None,
    destructive_reset: bool = False,
) -> List[str]:
    """
    Make sure the store has a header row and return it.

    Args:
        store: Target store (the caller holds its exclusive lock)
        style: Header presentation used when the header is (re)written
        destructive_reset: Clear data rows found under a blank header

    Returns:
        Header labels in column order

    Raises:
        SchemaInvalidError: the header is still empty after one heal attempt
    """
    style = style or HeaderStyle()

    if store.last_row_index() == 0 or store.last_column_index() == 0:
        initialize_schema(store, style, destructive=True)

    headers = store.read_schema()

    if not headers:
        logger.warning("Headers are empty, reinitializing...")
        _heal(store, style, destructive_reset)
        headers = store.read_schema()

    if not headers:
        logger.error("Header row still empty after reinitialization")
        raise SchemaInvalidError()

    logger.debug(f"Retrieved headers: {len(headers)} columns")
    return headers
