"""
Community Detection Backends

One backend class per clustering method, all sharing the ClusteringBackend
interface: ``cluster(graph)`` returns a ClusteringResult whose ``membership``
is a positive integer group label per graph node, in node order.

Backends:
- InfomapBackend: two-level Infomap from the ``infomap`` package
- InfomapConsoleBackend: the Infomap console application (hierarchical result)
- LouvainBackend: Louvain modularity optimisation from networkx
- NetcartoBackend: simulated-annealing modularity optimisation (rnetcarto)

Nodes a backend leaves unassigned (typically isolated localities) receive
their own singleton groups so that every node appears exactly once.

Example Usage:
    >>> from biogeonet.backends import ClusteringMethod, get_backend
    >>> backend = get_backend(ClusteringMethod.LOUVAIN, seed=1)
    >>> result = backend.cluster(locality_graph)
    >>> result.membership.value_counts()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union
import logging

import infomap
import networkx as nx
import pandas as pd

from .config import InfomapConsoleConfig, NetcartoConfig
from .infomap_console import run_infomap_console
from .netcarto import NetcartoRunner, RNetcartoRunner, relabel_modules

logger = logging.getLogger(__name__)


class UnsupportedConfigurationError(NotImplementedError):
    """The requested combination of graph type, method and mode is not implemented."""
    pass


class ClusteringMethod(str, Enum):
    """Community detection methods."""
    INFOMAP = "infomap"
    LOUVAIN = "louvain"
    NETCARTO = "netcarto"

    @classmethod
    def parse(cls, method: Union[str, "ClusteringMethod", None]) -> Optional["ClusteringMethod"]:
        """Convert a method name to the enum; None and "none" mean no clustering."""
        if method is None or isinstance(method, cls):
            return method
        if str(method).lower() == "none":
            return None
        try:
            return cls(str(method).lower())
        except ValueError:
            raise ValueError(
                f"Unknown clustering method '{method}'. "
                f"Use one of {[m.value for m in cls]} or None."
            ) from None


@dataclass
class ClusteringResult:
    """Flat membership, plus the module hierarchy when the backend provides one."""
    membership: pd.Series
    hierarchy: Optional[pd.DataFrame] = None


def _membership_series(assignments: dict, nodes: Sequence) -> pd.Series:
    """Build an int64 group Series in node order, filling unassigned nodes."""
    membership = pd.Series(
        [assignments.get(node) for node in nodes],
        index=pd.Index(nodes),
        dtype="Int64",
        name="group",
    )
    unassigned = membership[membership.isna()].index
    if len(unassigned) > 0:
        logger.warning(f"{len(unassigned)} nodes were not assigned a group "
                       "and get singleton groups")
        start = int(membership.max()) + 1 if membership.notna().any() else 1
        for offset, node in enumerate(unassigned):
            membership.loc[node] = start + offset
    return membership.astype("int64")


class ClusteringBackend(ABC):
    """Detect communities in a (weighted) graph."""

    method: ClusteringMethod

    @abstractmethod
    def cluster(self, graph: nx.Graph) -> ClusteringResult:
        """Return the group of every node of ``graph``."""


class InfomapBackend(ClusteringBackend):
    """
    Two-level Infomap using the ``infomap`` Python package.

    Parameters
    ----------
    seed : int, optional
        Random seed (default: infomap's own default)
    trials : int, optional
        Number of outer-loop trials, the best is kept (default: 1)
    """
    method = ClusteringMethod.INFOMAP

    def __init__(self, seed: Optional[int] = None, trials: int = 1):
        self.seed = seed
        self.trials = trials

    def cluster(self, graph: nx.Graph) -> ClusteringResult:
        logger.info("Infomap (in-process)")
        nodes = list(graph.nodes)
        node_ids = {node: idx for idx, node in enumerate(nodes)}

        options = {"two_level": True, "silent": True, "num_trials": self.trials}
        if self.seed is not None:
            options["seed"] = self.seed
        im = infomap.Infomap(**options)

        for node, idx in node_ids.items():
            im.add_node(idx, str(node))
        for u, v, w in graph.edges(data="weight", default=1.0):
            im.add_link(node_ids[u], node_ids[v], float(w))

        im.run()
        logger.info(f"Infomap found {im.num_top_modules} modules "
                    f"(codelength {im.codelength:.4f})")

        modules = im.get_modules(depth_level=1)
        assignments = {nodes[idx]: int(module) for idx, module in modules.items()}
        return ClusteringResult(_membership_series(assignments, nodes))


class InfomapConsoleBackend(ClusteringBackend):
    """
    Infomap console application; the top hierarchy level is the membership.

    Parameters
    ----------
    config : InfomapConsoleConfig, optional
        Executable location, arguments and timeout
    extra_args : str or sequence of str, optional
        Additional arguments appended after those of ``config``
    """
    method = ClusteringMethod.INFOMAP

    def __init__(self, config: Optional[InfomapConsoleConfig] = None,
                 extra_args: Union[str, Sequence[str], None] = None):
        self.config = config or InfomapConsoleConfig()
        self.extra_args = extra_args

    def cluster(self, graph: nx.Graph) -> ClusteringResult:
        logger.info("Infomap (console application)")
        hierarchy = run_infomap_console(graph, self.config, self.extra_args)
        assignments = hierarchy["h1"].dropna().astype(int).to_dict()
        return ClusteringResult(_membership_series(assignments, list(graph.nodes)), hierarchy)


class LouvainBackend(ClusteringBackend):
    """
    Louvain modularity optimisation (networkx).

    Groups are numbered 1..k in the order networkx returns the communities.
    """
    method = ClusteringMethod.LOUVAIN

    def __init__(self, seed: Optional[int] = None, resolution: float = 1.0):
        self.seed = seed
        self.resolution = resolution

    def cluster(self, graph: nx.Graph) -> ClusteringResult:
        logger.info("Louvain modularity optimisation")
        communities = nx.community.louvain_communities(
            graph, weight="weight", resolution=self.resolution, seed=self.seed
        )
        assignments = {
            node: label
            for label, community in enumerate(communities, start=1)
            for node in community
        }
        logger.info(f"Louvain found {len(communities)} communities")
        return ClusteringResult(_membership_series(assignments, list(graph.nodes)))


class NetcartoBackend(ClusteringBackend):
    """
    Netcarto on the dense adjacency matrix.

    Parameters
    ----------
    runner : callable, optional
        Service taking the adjacency DataFrame and returning the node table
        (``name``, ``module``). Defaults to RNetcartoRunner.
    config : NetcartoConfig, optional
        Configuration for the default runner
    """
    method = ClusteringMethod.NETCARTO

    def __init__(self, runner: Optional[NetcartoRunner] = None,
                 config: Optional[NetcartoConfig] = None):
        self.runner = runner if runner is not None else RNetcartoRunner(config)

    def cluster(self, graph: nx.Graph) -> ClusteringResult:
        logger.info("Netcarto")
        nodes = list(graph.nodes)
        adjacency = nx.to_pandas_adjacency(graph, nodelist=nodes, weight="weight")
        grouping = relabel_modules(self.runner(adjacency))
        return ClusteringResult(_membership_series(grouping.to_dict(), nodes))


def get_backend(
    method: ClusteringMethod,
    console: bool = False,
    seed: Optional[int] = None,
    infomap_trials: int = 1,
    console_config: Optional[InfomapConsoleConfig] = None,
    console_args: Union[str, Sequence[str], None] = None,
    netcarto_runner: Optional[NetcartoRunner] = None,
    netcarto_config: Optional[NetcartoConfig] = None,
) -> ClusteringBackend:
    """
    Instantiate the backend for ``method``.

    Raises
    ------
    UnsupportedConfigurationError
        If ``console`` is requested for a method other than infomap
    """
    if console and method is not ClusteringMethod.INFOMAP:
        raise UnsupportedConfigurationError(
            f"Console mode not yet implemented for method '{method.value}'"
        )

    if method is ClusteringMethod.INFOMAP:
        if console:
            return InfomapConsoleBackend(console_config, console_args)
        return InfomapBackend(seed=seed, trials=infomap_trials)
    if method is ClusteringMethod.LOUVAIN:
        return LouvainBackend(seed=seed)
    return NetcartoBackend(runner=netcarto_runner, config=netcarto_config)
