"""
Occurrence Graph Construction

This module turns an incidence matrix into a bipartite species/locality graph,
projects it onto the locality side, corrects the projected edge weights for
uneven sampling intensity, and exports graphs to GEXF.

Graph conventions (networkx):
- Species nodes carry ``bipartite=0``, locality nodes ``bipartite=1``
- Bipartite edges connect a species to every locality where it occurs
- Projected edge ``weight`` is the number of taxa shared by two localities

Sampling intensity correction divides every projected edge weight by the sum
of the sampling values of its endpoints:

    w'(u, v) = w(u, v) / (s(u) + s(v))

so that similarity driven by sampling effort alone is down-weighted.

Example Usage:
    >>> from biogeonet.graph import build_bipartite_graph, project_localities
    >>> bip = build_bipartite_graph(incidence)
    >>> loc = project_localities(bip)
    >>> loc_corr = correct_sampling_intensity(loc, sampvec)
"""

from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Union
import logging

import networkx as nx
from networkx.algorithms import bipartite as nx_bipartite
import pandas as pd

from .matrix import check_sampling_vector

logger = logging.getLogger(__name__)

SPECIES = 0
LOCALITY = 1


class GraphConstructionError(ValueError):
    """Error while building or projecting the occurrence graph."""
    pass


def build_bipartite_graph(incidence: pd.DataFrame) -> nx.Graph:
    """
    Build the bipartite species/locality graph from an incidence matrix.

    Parameters
    ----------
    incidence : pd.DataFrame
        Incidence matrix, species in rows and localities in columns

    Returns
    -------
    nx.Graph
        Graph with one node per species and per locality, and an edge
        (species, locality) of weight 1 for every non-zero incidence cell

    Raises
    ------
    GraphConstructionError
        If species and locality identifiers overlap, or if the matrix has no
        occurrences at all
    """
    species = [str(s) for s in incidence.index]
    localities = [str(c) for c in incidence.columns]

    shared = set(species) & set(localities)
    if shared:
        raise GraphConstructionError(
            "Species and locality identifiers must be distinct; shared: "
            f"{', '.join(sorted(shared)[:5])}"
        )

    graph = nx.Graph()
    graph.add_nodes_from(species, bipartite=SPECIES)
    graph.add_nodes_from(localities, bipartite=LOCALITY)

    values = incidence.to_numpy()
    rows, cols = (values > 0).nonzero()
    graph.add_edges_from(
        (species[i], localities[j], {"weight": 1.0}) for i, j in zip(rows, cols)
    )

    if graph.number_of_edges() == 0:
        raise GraphConstructionError(
            "Occurrence matrix has no occurrences; the bipartite graph has no edges"
        )

    logger.debug(f"Bipartite graph: {len(species)} species, {len(localities)} localities, "
                 f"{graph.number_of_edges()} edges")
    return graph


def locality_nodes(graph: nx.Graph) -> List[str]:
    """Return the locality nodes of a bipartite graph, in node order."""
    return [n for n, side in graph.nodes(data="bipartite") if side == LOCALITY]


def project_localities(
    graph: nx.Graph,
    localities: Optional[Iterable[str]] = None,
) -> nx.Graph:
    """
    Project a bipartite graph onto its locality side.

    Two localities are linked when they share at least one taxon; the edge
    weight is the number of shared taxa.

    Parameters
    ----------
    graph : nx.Graph
        Bipartite graph from build_bipartite_graph()
    localities : iterable of str, optional
        Locality nodes to project onto (default: nodes with bipartite == 1)

    Returns
    -------
    nx.Graph
        Weighted locality graph

    Raises
    ------
    GraphConstructionError
        If the bipartite graph has no edges
    """
    if graph.number_of_edges() == 0:
        raise GraphConstructionError("Cannot project a bipartite graph without edges")

    if localities is None:
        localities = locality_nodes(graph)
    localities = list(localities)

    projected = nx_bipartite.weighted_projected_graph(graph, localities)

    logger.info(f"Projected locality graph: {projected.number_of_nodes()} nodes, "
                f"{projected.number_of_edges()} edges")
    return projected


def correct_sampling_intensity(
    graph: nx.Graph,
    sampvec: Union[pd.Series, Mapping[str, float]],
) -> nx.Graph:
    """
    Rescale locality graph weights by sampling intensity.

    Every edge weight w(u, v) becomes w(u, v) / (s(u) + s(v)). The input graph
    is left untouched; a corrected copy is returned.

    Parameters
    ----------
    graph : nx.Graph
        Projected locality graph
    sampvec : pd.Series or Mapping
        Sampling intensity per locality

    Returns
    -------
    nx.Graph
        Copy of ``graph`` with corrected ``weight`` attributes

    Raises
    ------
    SamplingVectorError
        If a locality of the graph has no sampling value, or its value is not
        a finite positive number
    """
    if not isinstance(sampvec, pd.Series):
        sampvec = pd.Series(dict(sampvec), dtype=float)

    check_sampling_vector(sampvec, list(graph.nodes))

    corrected = graph.copy()
    for u, v, data in corrected.edges(data=True):
        data["weight"] = data.get("weight", 1.0) / (float(sampvec[u]) + float(sampvec[v]))

    logger.info(f"Applied sampling intensity correction to {corrected.number_of_edges()} edges")
    return corrected


def export_graph(
    graph: nx.Graph,
    path: Union[str, Path],
    grouping: Optional[pd.Series] = None,
) -> Path:
    """
    Write a graph to GEXF, optionally with group labels as node attribute.

    The group labels are attached to a copy of the graph, so neither the
    graph nor the grouping passed in is modified.

    Parameters
    ----------
    graph : nx.Graph
        Graph to export
    path : str or Path
        Output GEXF file
    grouping : pd.Series, optional
        Group label per node, written as the ``group`` attribute

    Returns
    -------
    Path
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    out = graph.copy()
    if grouping is not None:
        groups = {node: int(label) for node, label in grouping.items() if node in out}
        nx.set_node_attributes(out, groups, name="group")

    nx.write_gexf(out, path)
    logger.info(f"Exported graph ({out.number_of_nodes()} nodes) to {path}")
    return path
