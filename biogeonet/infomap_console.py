"""
Infomap Console Backend

Runs the Infomap console application on a graph and reads its hierarchical
result back. The workflow:

1. Write the graph in Pajek format to a fresh temporary directory
2. Run ``Infomap <dir>/graph.net <dir>/ [extra args]`` and wait for it
3. Check the exit status and the presence of ``<dir>/graph.tree``
4. Parse the tree file and name its rows after the graph vertices
5. Remove the temporary directory, on success and on failure

Vertices are written in graph node order, and the tree parser restores that
order from the index field, so row i of the parsed table is node i of the
graph.

Example Usage:
    >>> from biogeonet.infomap_console import run_infomap_console
    >>> tree = run_infomap_console(locality_graph)
    >>> tree["h1"]   # top-level module of every locality
"""

from pathlib import Path
from typing import Optional, Sequence, Union
import logging
import os
import shlex
import subprocess
import tempfile

import networkx as nx
import pandas as pd

from .config import InfomapConsoleConfig
from .platforms import get_console_platform
from .tree import load_tree, TreeParseError
from .utils import ExternalToolError, get_tool_installation_instructions

logger = logging.getLogger(__name__)

NETWORK_NAME = "graph"


def _split_args(extra_args: Union[str, Sequence[str], None]) -> list:
    if extra_args is None:
        return []
    if isinstance(extra_args, str):
        return shlex.split(extra_args)
    return [str(a) for a in extra_args]


def _weighted_copy(graph: nx.Graph) -> nx.Graph:
    """Copy of ``graph`` keeping only node order and edge weights."""
    out = nx.Graph()
    out.add_nodes_from(graph.nodes)
    out.add_edges_from(
        (u, v, {"weight": float(w)}) for u, v, w in graph.edges(data="weight", default=1.0)
    )
    return out


def run_infomap_console(
    graph: nx.Graph,
    config: Optional[InfomapConsoleConfig] = None,
    extra_args: Union[str, Sequence[str], None] = None,
) -> pd.DataFrame:
    """
    Cluster a graph with the Infomap console application.

    Parameters
    ----------
    graph : nx.Graph
        Graph to cluster; edge ``weight`` attributes are written to the network file
    config : InfomapConsoleConfig, optional
        Executable location, extra arguments, timeout and OS override
    extra_args : str or sequence of str, optional
        Arguments appended after those of ``config``

    Returns
    -------
    pd.DataFrame
        Hierarchy table (``h1``..``hD``) indexed by graph node, in node order

    Raises
    ------
    UnsupportedPlatformError
        If the operating system is not supported
    ExternalToolError
        If the executable is missing, exits with an error, times out, or
        does not write the tree file
    TreeParseError
        If the tree file is malformed or does not match the graph
    """
    if config is None:
        config = InfomapConsoleConfig()

    console_platform = get_console_platform(config.os_name)
    executable = console_platform.resolve_executable(config.executable_dir)
    if executable is None:
        where = config.executable_dir if config.executable_dir is not None else "PATH"
        error_msg = (
            f"{console_platform.infomap_executable} not found in {where}."
            f"{get_tool_installation_instructions('Infomap')}"
        )
        logger.error(error_msg)
        raise ExternalToolError(error_msg)

    nodes = list(graph.nodes)

    with tempfile.TemporaryDirectory(prefix="biogeonet_infomap_") as tmp:
        tmp_dir = Path(tmp)
        net_path = tmp_dir / f"{NETWORK_NAME}.net"
        tree_path = tmp_dir / f"{NETWORK_NAME}.tree"

        logger.info("Writing graph to temporary Pajek file")
        nx.write_pajek(_weighted_copy(graph), net_path)

        cmd = (
            [str(executable), str(net_path), str(tmp_dir) + os.sep]
            + list(config.extra_args)
            + _split_args(extra_args)
        )
        logger.info(f"Running Infomap console: {' '.join(cmd)}")

        try:
            subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                check=True,
                timeout=config.timeout,
            )
        except subprocess.CalledProcessError as e:
            error_msg = f"Infomap exited with status {e.returncode}:\n{e.stderr}"
            logger.error(error_msg)
            raise ExternalToolError(error_msg) from e
        except subprocess.TimeoutExpired as e:
            error_msg = f"Infomap did not finish within {config.timeout} seconds"
            logger.error(error_msg)
            raise ExternalToolError(error_msg) from e
        except OSError as e:
            error_msg = f"Failed to start Infomap ({executable}): {e}"
            logger.error(error_msg)
            raise ExternalToolError(error_msg) from e

        if not tree_path.exists():
            error_msg = f"Infomap finished but wrote no result file ({tree_path.name})"
            logger.error(error_msg)
            raise ExternalToolError(error_msg)

        logger.info("Reading membership")
        tree = load_tree(tree_path, simple=True)

    if len(tree) != len(nodes):
        raise TreeParseError(
            f"Infomap tree has {len(tree)} nodes but the graph has {len(nodes)}"
        )
    tree.index = pd.Index(nodes)
    return tree
