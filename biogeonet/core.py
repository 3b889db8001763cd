"""
Core Pipeline Orchestration for biogeonet

This module runs a complete partitioning analysis from an occurrence matrix
file to grouping tables on disk:

1. Read and validate the occurrence matrix
2. Read an explicit sampling vector (optional)
3. Build, project and correct the graph, then cluster it (group_network)
4. Write locality (and taxon) groupings, the console module hierarchy and
   the run parameters

Example Usage:
    >>> from biogeonet.core import run_pipeline
    >>> results = run_pipeline(
    ...     input_path="bivalves_occurrences.csv",
    ...     output_dir="results/",
    ... )
    >>> results['n_groups']
"""

from typing import Dict, Optional, Any, Union
from pathlib import Path
import json
import logging
import time

import networkx as nx
import pandas as pd

from . import utils, config, matrix
from .partition import Partition, group_network

logger = logging.getLogger(__name__)


def run_pipeline(
    input_path: Union[str, Path],
    output_dir: Union[str, Path],
    config_obj: Optional[config.PipelineConfig] = None,
    sampling_vector_path: Optional[Union[str, Path]] = None,
    dataset_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the complete partitioning pipeline on an occurrence matrix file.

    Parameters
    ----------
    input_path : str or Path
        CSV/TSV occurrence matrix (species in rows, localities in columns)
    output_dir : str or Path
        Directory for output files (created if missing)
    config_obj : PipelineConfig, optional
        Pipeline configuration (default: get_default_config())
    sampling_vector_path : str or Path, optional
        Two-column file with an explicit sampling value per locality. Takes
        precedence over ``partition.sampling_correction``.
    dataset_name : str, optional
        Prefix for output files (default: derived from the input filename)

    Returns
    -------
    Dict[str, Any]
        Dictionary containing:
        - 'success': bool
        - 'dataset': str
        - 'n_species', 'n_localities': int - Matrix dimensions
        - 'n_groups': int - Number of locality groups (0 without clustering)
        - 'files': Dict[str, Path] - Paths to output files
        - 'errors': List[str] - Error messages

    Raises
    ------
    FileNotFoundError
        If the input file does not exist
    FileExistsError
        If the locality table, or the graph file of a run without a method,
        exists and ``overwrite_existing`` is False
    """
    cfg = config_obj if config_obj is not None else config.get_default_config()
    part = cfg.partition
    start = time.time()

    input_path = Path(input_path)
    if dataset_name is None:
        dataset_name = utils.extract_dataset_name(input_path)

    results = {
        'success': False,
        'dataset': dataset_name,
        'output_dir': Path(output_dir),
        'files': {},
        'errors': [],
    }

    output_path = utils.create_output_directory(output_dir)
    localities_file = output_path / f"{dataset_name}_localities.tsv"
    taxa_file = output_path / f"{dataset_name}_taxa.tsv"
    graph_file = output_path / f"{dataset_name}_graph.gexf"
    hierarchy_file = output_path / f"{dataset_name}_hierarchy.tsv"

    export = part.export_path
    if export is None and part.method is None:
        export = graph_file

    if not cfg.overwrite_existing:
        guarded = [localities_file] if part.method is not None else [Path(export)]
        for existing in guarded:
            if existing.exists():
                raise FileExistsError(
                    f"Output already exists: {existing} (set overwrite_existing to replace it)"
                )

    logger.info("=" * 80)
    logger.info(f"biogeonet partitioning - {dataset_name}")
    logger.info("=" * 80)

    try:
        occurrences = matrix.read_occurrence_matrix(input_path)
        results['n_species'] = occurrences.shape[0]
        results['n_localities'] = occurrences.shape[1]

        sampcorr = part.sampling_correction
        if sampling_vector_path is not None:
            sampcorr = matrix.read_sampling_vector(sampling_vector_path)

        grouping = group_network(
            occurrences,
            bipartite=part.bipartite,
            method=part.method,
            export=export,
            console=part.console,
            sampcorr=sampcorr,
            onlyloc=part.only_localities,
            console_config=cfg.infomap_console,
            seed=part.seed,
            infomap_trials=part.infomap_trials,
            netcarto_config=cfg.netcarto,
        )

        if export is not None:
            results['files']['graph'] = Path(export)

        if isinstance(grouping, nx.Graph):
            results['n_groups'] = 0
        else:
            hierarchy = None
            if isinstance(grouping, Partition):
                loc_groups, taxa_groups = grouping.localities, grouping.taxa
                hierarchy = grouping.hierarchy
            else:
                loc_groups, taxa_groups = grouping, None

            _write_grouping(loc_groups, localities_file, "locality")
            results['files']['localities'] = localities_file
            if taxa_groups is not None:
                _write_grouping(taxa_groups, taxa_file, "taxon")
                results['files']['taxa'] = taxa_file
            if hierarchy is not None:
                hierarchy.rename_axis("node").to_csv(hierarchy_file, sep='\t')
                results['files']['hierarchy'] = hierarchy_file
            results['n_groups'] = int(loc_groups.nunique())

        params_file = output_path / f"{dataset_name}_partition_parameters.json"
        params = cfg.to_serializable_dict()
        params['input'] = str(input_path)
        params['sampling_vector'] = (str(sampling_vector_path)
                                     if sampling_vector_path is not None else None)
        with open(params_file, 'w') as f:
            json.dump(params, f, indent=2)
        results['files']['parameters'] = params_file

        results['success'] = True
        logger.info(f"Finished in {utils.format_elapsed_time(time.time() - start)}")

    except Exception as e:
        results['errors'].append(str(e))
        logger.error(f"Partitioning failed: {e}")
        raise

    return results


def _write_grouping(grouping: pd.Series, path: Path, id_column: str) -> None:
    df = grouping.rename("group").rename_axis(id_column).reset_index()
    df.to_csv(path, sep='\t', index=False)
    logger.info(f"Wrote {len(df)} {id_column} groups to {path}")
