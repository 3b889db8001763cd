"""
biogeonet: Network-Based Biogeographic Partitioning

biogeonet partitions localities into biogeographic groups from a
species-by-locality occurrence matrix. Occurrences become a bipartite graph of
taxa and localities, optionally projected onto the localities and corrected for
uneven sampling intensity, which is then clustered by community detection.

Core functionality includes:
- Incidence conversion and sampling intensity vectors
- Bipartite graph construction and locality projection
- Sampling intensity correction of locality graph weights
- Community detection with infomap (in-process or console), louvain and netcarto
- Infomap .tree result parsing
- GEXF export of clustered graphs
"""

__version__ = "0.1.0"

# Import main modules for easy access
from . import config
from . import matrix
from . import graph
from . import tree
from . import backends
from . import partition
from . import utils

from .partition import group_network, Partition

__all__ = [
    "config",
    "matrix",
    "graph",
    "tree",
    "backends",
    "partition",
    "utils",
    "group_network",
    "Partition",
]
