"""
Network-Based Biogeographic Partitioning

This module is the entry point for partitioning an occurrence matrix into
biogeographic groups. It coordinates graph construction, sampling correction,
community detection and result assembly:

    occurrence matrix -> incidence matrix -> bipartite graph
        -> [unipartite] locality projection -> sampling correction
        -> clustering backend -> grouping

Bipartite mode clusters species and localities together (infomap only); the
combined grouping is split by membership in the locality identifier set.
Unipartite mode clusters the projected locality graph with infomap, louvain
or netcarto. Without a method the graph itself is returned.

Example Usage:
    >>> from biogeonet.partition import group_network
    >>> groups = group_network(occurrences, method="louvain", sampcorr="occ", seed=1)
    >>> groups.value_counts()
    >>>
    >>> both = group_network(occurrences, bipartite=True, onlyloc=False)
    >>> both.taxa.head()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence, Union
import logging

import networkx as nx
import pandas as pd

from .backends import (
    ClusteringMethod, UnsupportedConfigurationError, get_backend,
)
from .config import InfomapConsoleConfig, NetcartoConfig
from .graph import (
    build_bipartite_graph, project_localities, correct_sampling_intensity, export_graph,
)
from .matrix import SamplingInput, sampling_vector, to_incidence, validate_occurrence_matrix
from .netcarto import NetcartoRunner

logger = logging.getLogger(__name__)


@dataclass
class Partition:
    """
    Grouping of a bipartite run, or of a console run that keeps its hierarchy.

    Attributes
    ----------
    localities : pd.Series
        Group label per locality
    taxa : pd.Series, optional
        Group label per taxon
    hierarchy : pd.DataFrame, optional
        Module hierarchy (h1..hD) per node, when the console backend was used
    """
    localities: pd.Series
    taxa: Optional[pd.Series] = None
    hierarchy: Optional[pd.DataFrame] = None


def assemble_partition(
    grouping: Union[pd.Series, Mapping],
    locality_ids: Iterable[str],
    bipartite: bool = False,
    onlyloc: bool = True,
    hierarchy: Optional[pd.DataFrame] = None,
) -> Union[pd.Series, Partition]:
    """
    Shape raw backend output into the final grouping.

    Group labels are coerced to plain int64 values. Entities are split into
    localities and taxa by membership in ``locality_ids``.

    Returns
    -------
    pd.Series or Partition
        The locality grouping when ``onlyloc`` is set. Otherwise a Partition:
        with locality and taxon groupings for bipartite runs, or with the
        locality grouping and ``hierarchy`` for unipartite runs that have one.
        Unipartite runs without a hierarchy always return the locality grouping.

    Raises
    ------
    ValueError
        If a label is missing or is not a positive integer
    """
    grouping = pd.Series(grouping)
    labels = pd.to_numeric(pd.Series(grouping.to_numpy(dtype=object), index=grouping.index))
    if labels.isna().any() or (labels < 1).any() or (labels % 1 != 0).any():
        raise ValueError("Group labels must be positive integers")
    labels = labels.astype("int64").rename("group")

    is_locality = labels.index.isin(set(locality_ids))
    localities = labels[is_locality]

    if onlyloc:
        return localities
    if bipartite:
        return Partition(localities=localities, taxa=labels[~is_locality], hierarchy=hierarchy)
    if hierarchy is not None:
        return Partition(localities=localities, hierarchy=hierarchy)
    return localities


def group_network(
    contingency: pd.DataFrame,
    bipartite: bool = False,
    method: Union[str, ClusteringMethod, None] = "infomap",
    export: Optional[Union[str, Path]] = None,
    console: bool = False,
    sampcorr: Optional[SamplingInput] = None,
    onlyloc: bool = True,
    console_config: Optional[InfomapConsoleConfig] = None,
    console_args: Union[str, Sequence[str], None] = None,
    seed: Optional[int] = None,
    infomap_trials: int = 1,
    netcarto_runner: Optional[NetcartoRunner] = None,
    netcarto_config: Optional[NetcartoConfig] = None,
) -> Union[pd.Series, Partition, nx.Graph]:
    """
    Partition localities (and optionally taxa) of an occurrence matrix.

    Parameters
    ----------
    contingency : pd.DataFrame
        Occurrence matrix, species in rows and localities in columns
    bipartite : bool, optional
        Cluster the bipartite species/locality graph instead of the projected
        locality graph (default: False)
    method : str, ClusteringMethod or None, optional
        "infomap", "louvain", "netcarto", or None to return the graph
        (default: "infomap")
    export : str or Path, optional
        Write the graph to this GEXF file, with a ``group`` node attribute
        when clustering was performed
    console : bool, optional
        Use the Infomap console application (infomap only, default: False)
    sampcorr : "occ", "dom", Mapping or pd.Series, optional
        Sampling intensity correction of the locality graph (unipartite only)
    onlyloc : bool, optional
        Report only the locality grouping (default: True). When False,
        bipartite runs also report taxa, and console runs keep the full
        module hierarchy in the returned Partition
    console_config : InfomapConsoleConfig, optional
        Infomap executable location, arguments, timeout and OS override
    console_args : str or sequence of str, optional
        Extra arguments for the Infomap console application
    seed : int, optional
        Random seed for infomap and louvain
    infomap_trials : int, optional
        Outer-loop trials of the in-process infomap run (default: 1)
    netcarto_runner : callable, optional
        Replacement for the rnetcarto service
    netcarto_config : NetcartoConfig, optional
        Configuration of the default rnetcarto service

    Returns
    -------
    pd.Series, Partition or nx.Graph
        Locality grouping; a Partition for bipartite runs or console runs
        with onlyloc=False; the (corrected) graph when ``method`` is None

    Raises
    ------
    UnsupportedConfigurationError
        For louvain/netcarto on bipartite graphs, or console mode with a
        method other than infomap
    """
    method = ClusteringMethod.parse(method)

    if bipartite and method in (ClusteringMethod.LOUVAIN, ClusteringMethod.NETCARTO):
        raise UnsupportedConfigurationError(
            f"Method '{method.value}' not yet implemented for bipartite graphs"
        )
    if console and method is not None and method is not ClusteringMethod.INFOMAP:
        raise UnsupportedConfigurationError(
            f"Console mode not yet implemented for method '{method.value}'"
        )

    validate_occurrence_matrix(contingency)
    localities = [str(c) for c in contingency.columns]

    # Edges only need the incidence; sampling vectors use the original values
    graph = build_bipartite_graph(to_incidence(contingency))

    if bipartite:
        if sampcorr is not None:
            logger.warning("Sampling correction is ignored for bipartite graphs")
    else:
        graph = project_localities(graph, localities)
        if sampcorr is not None:
            graph = correct_sampling_intensity(graph, sampling_vector(contingency, sampcorr))

    if method is None:
        if export is not None:
            export_graph(graph, export)
        return graph

    backend = get_backend(
        method,
        console=console,
        seed=seed,
        infomap_trials=infomap_trials,
        console_config=console_config,
        console_args=console_args,
        netcarto_runner=netcarto_runner,
        netcarto_config=netcarto_config,
    )
    result = backend.cluster(graph)

    if export is not None:
        logger.info("Exporting graph")
        export_graph(graph, export, result.membership)

    grouping = assemble_partition(
        result.membership, localities, bipartite=bipartite, onlyloc=onlyloc,
        hierarchy=result.hierarchy,
    )
    n_groups = grouping.nunique() if isinstance(grouping, pd.Series) else grouping.localities.nunique()
    logger.info(f"Partitioned {len(localities)} localities into {n_groups} groups")
    return grouping
