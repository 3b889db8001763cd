"""
Netcarto Backend Service

Netcarto finds modules by simulated-annealing modularity optimisation on the
full adjacency matrix of a graph. The reference implementation is the R
package ``rnetcarto``; this module reaches it through ``Rscript``:

1. Dump the dense adjacency matrix as CSV into a temporary directory
2. Run a short R script calling ``rnetcarto::netcarto(adj, bipartite=FALSE)``
3. Read back the node table (``name``, ``module``, ...)

Any callable taking the adjacency DataFrame and returning a DataFrame with
``name`` and ``module`` columns can replace the R runner.

Module labels come back as arbitrary categories. relabel_modules() turns them
into dense integers 1..k following the lexical order of the labels as strings.
The order is deterministic but carries no meaning.
"""

from pathlib import Path
from typing import Callable, Optional
import logging
import shutil
import subprocess
import tempfile

import pandas as pd

from .config import NetcartoConfig
from .utils import ExternalToolError, get_tool_installation_instructions

logger = logging.getLogger(__name__)

NetcartoRunner = Callable[[pd.DataFrame], pd.DataFrame]

R_SCRIPT = """
args <- commandArgs(trailingOnly = TRUE)
adj <- as.matrix(read.csv(args[1], row.names = 1, check.names = FALSE))
res <- rnetcarto::netcarto(adj, bipartite = FALSE)
write.csv(res[[1]], args[2], row.names = FALSE)
"""


class NetcartoError(ExternalToolError):
    """Error while running netcarto or reading its result."""
    pass


class RNetcartoRunner:
    """
    Run rnetcarto through Rscript.

    Parameters
    ----------
    config : NetcartoConfig, optional
        Rscript executable and timeout
    """

    def __init__(self, config: Optional[NetcartoConfig] = None):
        self.config = config or NetcartoConfig()

    def __call__(self, adjacency: pd.DataFrame) -> pd.DataFrame:
        rscript = shutil.which(self.config.rscript)
        if rscript is None:
            error_msg = (f"{self.config.rscript} not found in PATH."
                         f"{get_tool_installation_instructions('Rscript')}")
            logger.error(error_msg)
            raise NetcartoError(error_msg)

        with tempfile.TemporaryDirectory(prefix="biogeonet_netcarto_") as tmp:
            tmp_dir = Path(tmp)
            script_path = tmp_dir / "netcarto.R"
            adj_path = tmp_dir / "adjacency.csv"
            out_path = tmp_dir / "modules.csv"

            script_path.write_text(R_SCRIPT)
            adjacency.to_csv(adj_path)

            cmd = [rscript, str(script_path), str(adj_path), str(out_path)]
            logger.info(f"Running rnetcarto: {' '.join(cmd)}")

            try:
                subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    check=True,
                    timeout=self.config.timeout,
                )
            except subprocess.CalledProcessError as e:
                error_msg = f"rnetcarto failed:\n{e.stderr}"
                logger.error(error_msg)
                raise NetcartoError(error_msg) from e
            except subprocess.TimeoutExpired as e:
                error_msg = f"rnetcarto did not finish within {self.config.timeout} seconds"
                logger.error(error_msg)
                raise NetcartoError(error_msg) from e

            if not out_path.exists():
                raise NetcartoError("rnetcarto finished but wrote no module table")

            return pd.read_csv(out_path, dtype={"name": str})


def relabel_modules(modules: pd.DataFrame) -> pd.Series:
    """
    Convert a netcarto node table into a dense integer grouping.

    Parameters
    ----------
    modules : pd.DataFrame
        Table with ``name`` and ``module`` columns

    Returns
    -------
    pd.Series
        Group label (1..k) indexed by node name. Labels follow the lexical
        order of the module labels as strings.

    Examples
    --------
    >>> table = pd.DataFrame({"name": ["a", "b", "c"], "module": [10, 2, 10]})
    >>> relabel_modules(table).tolist()
    [1, 2, 1]
    """
    missing = {"name", "module"} - set(modules.columns)
    if missing:
        raise NetcartoError(f"netcarto result lacks columns: {', '.join(sorted(missing))}")

    categories = pd.Categorical(modules["module"].astype(str))
    return pd.Series(
        categories.codes.astype("int64") + 1,
        index=pd.Index(modules["name"].astype(str)),
        name="group",
    )
