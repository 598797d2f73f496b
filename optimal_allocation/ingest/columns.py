"""
Column-name normalization and alias resolution.

Uploaded tables use many spellings for the same field ("Polygon",
"Unit ID", "found", ...). Names are resolved once, at ingestion, through
a static canonical → aliases map, so the core only ever sees canonical
column names.

Strategy:
1. Normalize: lowercase, strip, punctuation/whitespace runs → "_"
2. Exact canonical names win
3. Otherwise map through COLUMN_ALIASES (first source column wins)
4. Log every rename and every collision for audit
"""

import re

from optimal_allocation import config
from optimal_allocation.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

C = config

COLUMN_ALIASES = {
    C.UNIT_ID: ("polygon", "polygons", "unitid", "id", "unit"),
    C.AREA: ("area (m2)", "area (sq m)"),
    C.PROBABILITY: ("prior probability", "prior", "prob", "p"),
    C.SWEEP_WIDTH: ("sweepwidth", "sweep_width (m)", "sw", "width"),
    C.VISIBILITY: ("visibility class", "vis"),
    C.L_WALKED_TODAY: (
        "lwalkedtoday", "l_walked", "length_walked", "metres_walked",
        "meters_walked", "distance_walked", "survey_length", "transect_length",
    ),
    C.SUCCESS: ("found", "detected", "result", "presence"),
}

_PUNCT = re.compile(r"[^a-z0-9_]+")
_UNDERSCORES = re.compile(r"_+")


def normalize_column_name(name) -> str:
    """Normalize a raw header: lowercase, trimmed, non-alphanumerics to '_'.

    "Area (m2)" → "area_m2", " Unit ID " → "unit_id".
    """
    text = str(name).strip().lower()
    text = _PUNCT.sub("_", text)
    return _UNDERSCORES.sub("_", text).strip("_")


def _build_lookup():
    lookup = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            lookup[normalize_column_name(alias)] = canonical
    return lookup


_ALIAS_LOOKUP = _build_lookup()
_CANONICAL = frozenset(COLUMN_ALIASES)


def resolve_column_names(columns) -> dict:
    """Map raw column names to canonical names.

    Parameters
    ----------
    columns : iterable
        Raw column headers.

    Returns
    -------
    dict
        raw name -> new name for every column. Unrecognised columns map
        to their normalized form; an alias whose canonical target is
        already taken keeps its normalized form, suffixed ``_2``, ``_3``
        ... if that name is in use too.
    """
    columns = list(columns)
    normalized = {raw: normalize_column_name(raw) for raw in columns}

    mapping = {}
    claimed = set()

    # Exact canonical names take precedence over aliases.
    for raw in columns:
        norm = normalized[raw]
        if norm in _CANONICAL and norm not in claimed:
            mapping[raw] = norm
            claimed.add(norm)

    for raw in columns:
        if raw in mapping:
            continue
        norm = normalized[raw]
        target = _ALIAS_LOOKUP.get(norm)
        if target is not None and target not in claimed:
            log.debug("Column alias: '%s' -> '%s'", raw, target)
            mapping[raw] = target
            claimed.add(target)
            continue
        if target is not None or norm in _CANONICAL:
            log.warning("Column '%s' also resolves to '%s'; left unmapped",
                        raw, target or norm)
        # A leftover never shadows a name already in use.
        name, k = norm, 2
        while name in claimed:
            name = f"{norm}_{k}"
            k += 1
        mapping[raw] = name
        claimed.add(name)

    return mapping


def standardize_columns(df):
    """Return a copy of *df* with canonical column names."""
    mapping = resolve_column_names(df.columns)
    out = df.rename(columns=mapping)
    log.info("Cleaned columns: %s", ", ".join(map(str, out.columns)))
    return out
