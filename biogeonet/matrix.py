"""
Occurrence Matrix Handling

This module reads and validates species-by-locality occurrence matrices,
converts them to incidence matrices, and derives the sampling intensity
vectors used to correct locality graph weights.

Conventions:
- Rows are species (taxa), columns are localities
- Values are non-negative occurrence counts or abundances
- Row and column identifiers are unique, non-empty strings

Incidence conversion is a literal threshold: every cell greater than 1 is set
to 1, cells equal to 0 or 1 are left untouched. Negative or missing values are
not checked here.

Sampling intensity proxies (per locality, from the ORIGINAL matrix):
- "occ": sum of the occurrence values in the locality's column
- "dom": largest single value in the column (abundance of the dominant taxon)

Example Usage:
    >>> from biogeonet.matrix import read_occurrence_matrix, to_incidence
    >>> occ = read_occurrence_matrix("bivalves_occurrences.csv")
    >>> inc = to_incidence(occ)
    >>> sampvec = sampling_vector(occ, "occ")
"""

from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Union
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class OccurrenceMatrixError(ValueError):
    """Raised when an occurrence matrix violates its format contract."""
    pass


class SamplingVectorError(ValueError):
    """Raised when a sampling intensity vector cannot be used for correction."""
    pass


class SamplingCorrection(str, Enum):
    """Sampling intensity proxies derived from the occurrence matrix."""
    OCCURRENCES = "occ"
    DOMINANT = "dom"


SamplingInput = Union[str, SamplingCorrection, Mapping[str, float], pd.Series]


def read_occurrence_matrix(path: Union[str, Path], sep: Optional[str] = None) -> pd.DataFrame:
    """
    Read an occurrence matrix from a delimited text file.

    The first column holds species identifiers and the header row holds
    locality identifiers.

    Parameters
    ----------
    path : str or Path
        CSV or TSV file
    sep : str, optional
        Field separator. Inferred from the extension if not given
        (tab for .tsv/.txt, comma otherwise)

    Returns
    -------
    pd.DataFrame
        Validated occurrence matrix

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    OccurrenceMatrixError
        If the matrix is empty, non-numeric, or has invalid identifiers
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Occurrence matrix not found: {path}")

    if sep is None:
        sep = '\t' if path.suffix.lower() in ('.tsv', '.txt', '.tab') else ','

    df = pd.read_csv(path, sep=sep, index_col=0)
    df.index = df.index.map(lambda x: str(x).strip() if pd.notna(x) else "")
    df.columns = [str(c).strip() for c in df.columns]

    logger.info(f"Read occurrence matrix {path.name}: "
                f"{df.shape[0]} species x {df.shape[1]} localities")

    validate_occurrence_matrix(df)
    return df


def validate_occurrence_matrix(matrix: pd.DataFrame) -> None:
    """
    Check the identifier and value invariants of an occurrence matrix.

    Raises
    ------
    OccurrenceMatrixError
        If the matrix is empty, contains non-numeric columns, or has
        empty or duplicated row/column identifiers
    """
    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        raise OccurrenceMatrixError(
            f"Occurrence matrix is empty (shape {matrix.shape})"
        )

    for axis_name, labels in (("species", matrix.index), ("locality", matrix.columns)):
        names = [str(x) for x in labels]
        if any(not name.strip() for name in names):
            raise OccurrenceMatrixError(f"Empty {axis_name} identifier in occurrence matrix")
        duplicated = pd.Index(names)[pd.Index(names).duplicated()].unique()
        if len(duplicated) > 0:
            raise OccurrenceMatrixError(
                f"Duplicated {axis_name} identifiers: {', '.join(duplicated[:5])}"
            )

    non_numeric = [c for c, dtype in matrix.dtypes.items()
                   if not pd.api.types.is_numeric_dtype(dtype)]
    if non_numeric:
        raise OccurrenceMatrixError(
            f"Non-numeric locality columns: {', '.join(map(str, non_numeric[:5]))}"
        )


def to_incidence(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Convert an occurrence matrix to an incidence matrix.

    Every cell greater than 1 is set to 1; all other cells are unchanged.
    The input is not modified.

    Examples
    --------
    >>> occ = pd.DataFrame({"A": [0, 3], "B": [1, 0]}, index=["sp1", "sp2"])
    >>> to_incidence(occ)["A"].tolist()
    [0, 1]
    """
    incidence = matrix.copy()
    incidence[incidence > 1] = 1
    return incidence


def sampling_vector(matrix: pd.DataFrame, mode: SamplingInput) -> pd.Series:
    """
    Build the per-locality sampling intensity vector.

    Parameters
    ----------
    matrix : pd.DataFrame
        ORIGINAL (untruncated) occurrence matrix
    mode : str, SamplingCorrection, Mapping or pd.Series
        "occ" for column sums, "dom" for column maxima, or an explicit
        locality -> value mapping which is returned as a float Series

    Returns
    -------
    pd.Series
        Sampling intensity indexed by locality identifier

    Raises
    ------
    ValueError
        If ``mode`` is an unknown string
    """
    if isinstance(mode, pd.Series):
        return mode.astype(float)
    if isinstance(mode, Mapping):
        return pd.Series(dict(mode), dtype=float)

    try:
        mode = SamplingCorrection(mode)
    except ValueError:
        raise ValueError(
            f"Unknown sampling correction '{mode}'. "
            f"Use one of {[m.value for m in SamplingCorrection]} or a mapping."
        ) from None

    if mode is SamplingCorrection.OCCURRENCES:
        sampvec = matrix.sum(axis=0)
    else:
        sampvec = matrix.max(axis=0)

    sampvec = sampvec.astype(float)
    sampvec.index = sampvec.index.map(str)
    logger.debug(f"Sampling vector ({mode.value}): min={sampvec.min():g}, "
                 f"max={sampvec.max():g}")
    return sampvec


def check_sampling_vector(sampvec: pd.Series, localities) -> None:
    """
    Verify that a sampling vector covers the given localities with usable values.

    Raises
    ------
    SamplingVectorError
        If a locality is missing, or its value is not a finite positive number
    """
    missing = [loc for loc in localities if loc not in sampvec.index]
    if missing:
        raise SamplingVectorError(
            f"Sampling vector has no entry for {len(missing)} localities: "
            f"{', '.join(map(str, missing[:5]))}"
        )

    values = pd.to_numeric(sampvec.loc[list(localities)], errors='coerce')
    invalid = values[~np.isfinite(values) | (values <= 0)]
    if len(invalid) > 0:
        raise SamplingVectorError(
            "Sampling vector values must be finite and positive; offending "
            f"localities: {', '.join(map(str, invalid.index[:5]))}"
        )


def read_sampling_vector(path: Union[str, Path], sep: Optional[str] = None) -> pd.Series:
    """
    Read an explicit sampling vector from a two-column delimited file
    (locality identifier, value). A header row is expected.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sampling vector file not found: {path}")

    if sep is None:
        sep = '\t' if path.suffix.lower() in ('.tsv', '.txt', '.tab') else ','

    df = pd.read_csv(path, sep=sep)
    if df.shape[1] < 2:
        raise SamplingVectorError(
            f"Sampling vector file needs two columns (locality, value): {path}"
        )

    sampvec = pd.Series(
        pd.to_numeric(df.iloc[:, 1], errors='coerce').values,
        index=df.iloc[:, 0].astype(str).str.strip(),
        dtype=float,
    )
    logger.info(f"Read sampling vector for {len(sampvec)} localities from {path.name}")
    return sampvec
