"""
Infomap Tree File Parsing

Reads the hierarchical clustering result written by the Infomap console
application (``.tree`` format). The first two lines are a header and are
skipped; every following line has four space-separated fields:

    1:2:1 0.0294118 "Locality_12" 7

1. colon-separated path: module ids from the top level down, ending with the
   node's rank inside its module
2. flow through the node (float)
3. node name in double quotes (may contain spaces)
4. node index in the input network (integer)

The module path (all path elements but the trailing rank) becomes the
hierarchy columns h1..hD, where D is the deepest module path in the file.
Shallower rows are padded with <NA>. Rows are returned in ascending index
order, restoring the vertex order of the input network.
"""

from pathlib import Path
from typing import List, Union
import logging
import shlex

import pandas as pd

logger = logging.getLogger(__name__)

HEADER_LINES = 2


class TreeParseError(ValueError):
    """Raised when a tree file line does not follow the expected format."""
    pass


def _module_path(path_field: str) -> List[int]:
    parts = [int(p) for p in path_field.split(":")]
    # Last element is the rank within the module
    return parts[:-1] if len(parts) > 1 else parts


def load_tree(file: Union[str, Path], simple: bool = True) -> pd.DataFrame:
    """
    Parse an Infomap .tree file into a table.

    Parameters
    ----------
    file : str or Path
        Path to the .tree file
    simple : bool, optional
        Return only the hierarchy columns (default: True)

    Returns
    -------
    pd.DataFrame
        Indexed by node name, sorted by node index. Columns ``flow``,
        ``index`` and ``h1``..``hD`` (nullable integers), or only the
        ``h`` columns if ``simple`` is True

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    TreeParseError
        If a line does not have four fields, or a field cannot be converted

    Examples
    --------
    >>> tree = load_tree("graph.tree")
    >>> tree["h1"].value_counts()
    """
    file = Path(file)
    with open(file, "r") as handle:
        lines = handle.read().splitlines()

    names, flows, indices, paths = [], [], [], []

    for lineno, line in enumerate(lines[HEADER_LINES:], start=HEADER_LINES + 1):
        if not line.strip():
            continue

        try:
            fields = shlex.split(line)
        except ValueError as e:
            raise TreeParseError(f"{file.name} line {lineno}: {e}: {line!r}") from e
        if len(fields) != 4:
            raise TreeParseError(
                f"{file.name} line {lineno}: expected 4 fields, got {len(fields)}: {line!r}"
            )

        path_field, flow_field, name_field, index_field = fields
        try:
            paths.append(_module_path(path_field))
            flows.append(float(flow_field))
            indices.append(int(index_field))
        except ValueError as e:
            raise TreeParseError(f"{file.name} line {lineno}: {e}: {line!r}") from e
        names.append(name_field)

    if not names:
        raise TreeParseError(f"{file.name}: no node lines after the header")

    depth = max(len(p) for p in paths)
    hier_cols = [f"h{i}" for i in range(1, depth + 1)]
    hier = pd.DataFrame(
        [p + [pd.NA] * (depth - len(p)) for p in paths],
        columns=hier_cols,
    ).astype("Int64")

    res = pd.DataFrame({"flow": flows, "index": indices})
    res = pd.concat([res, hier], axis=1)
    res.index = pd.Index(names, name="name")
    res = res.sort_values("index", kind="stable")

    logger.debug(f"Parsed {len(res)} nodes with {depth} hierarchy levels from {file.name}")

    if simple:
        return res[hier_cols]
    return res
