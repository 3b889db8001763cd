#!/usr/bin/env python3
"""
biogeonet Command-Line Interface

Network-based biogeographic partitioning of an occurrence matrix: graph
construction, sampling intensity correction and community detection.
"""

import argparse
import shlex
import sys
import logging
from pathlib import Path
from typing import Optional, List

from . import __version__, utils, config
from .core import run_pipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='biogeonet',
        description='Partition localities of an occurrence matrix into biogeographic '
                    'groups using community detection on occurrence networks.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Infomap on the locality graph
  biogeonet bivalves_occurrences.csv

  # Louvain with sampling intensity correction
  biogeonet bivalves_occurrences.csv --method louvain --sampling occ

  # Bipartite Infomap console run, reporting taxa too
  biogeonet bivalves_occurrences.csv --bipartite --console --infomap-dir ~/bin --with-taxa
""",
    )

    parser.add_argument(
        'matrix',
        type=Path,
        help='Occurrence matrix (CSV/TSV): species in rows, localities in columns'
    )

    parser.add_argument(
        '--output', '-o',
        type=Path,
        default=None,
        help='Output directory (default: {dataset}_output in current directory)'
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='YAML or JSON configuration file; command-line options override it'
    )

    parser.add_argument(
        '--method',
        choices=['infomap', 'louvain', 'netcarto', 'none'],
        default=None,
        help='Community detection method; "none" exports the graph only (default: infomap)'
    )

    parser.add_argument(
        '--bipartite',
        action='store_true',
        help='Cluster the bipartite species/locality graph (infomap only)'
    )

    parser.add_argument(
        '--console',
        action='store_true',
        help='Run the Infomap console application instead of the infomap package'
    )

    parser.add_argument(
        '--infomap-dir',
        type=Path,
        default=None,
        help='Directory containing the Infomap executable (default: search PATH)'
    )

    parser.add_argument(
        '--infomap-args',
        type=str,
        default=None,
        help='Extra arguments passed verbatim to the Infomap console application'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=None,
        help='Seconds to wait for external tools before failing (default: no limit)'
    )

    sampling = parser.add_mutually_exclusive_group()
    sampling.add_argument(
        '--sampling',
        choices=['occ', 'dom'],
        default=None,
        help='Sampling intensity correction: occurrences per locality (occ) or '
             'abundance of the dominant taxon (dom)'
    )
    sampling.add_argument(
        '--sampling-file',
        type=Path,
        default=None,
        help='Two-column file (locality, value) with explicit sampling intensities'
    )

    parser.add_argument(
        '--with-taxa',
        action='store_true',
        help='Also report taxon groups of a bipartite run and the module hierarchy '
             'of a console run'
    )

    parser.add_argument(
        '--export',
        type=Path,
        default=None,
        help='Write the clustered graph to this GEXF file'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for infomap and louvain'
    )

    parser.add_argument(
        '--overwrite',
        action='store_true',
        help='Overwrite existing output files'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging verbosity (default: INFO)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'biogeonet {__version__}'
    )

    return parser


def config_from_args(args: argparse.Namespace) -> config.PipelineConfig:
    """Merge file, environment and command-line settings into one configuration."""
    if args.config is not None:
        cfg = config.load_config_from_file(args.config)
    else:
        cfg = config.get_default_config()

    env_overrides = config.load_config_from_env()
    if env_overrides:
        cfg = cfg.update(**env_overrides)

    overrides = {
        'log_level': args.log_level,
        'partition__bipartite': args.bipartite or cfg.partition.bipartite,
        'partition__console': args.console or cfg.partition.console,
        'partition__only_localities': cfg.partition.only_localities and not args.with_taxa,
        'overwrite_existing': args.overwrite or cfg.overwrite_existing,
    }
    if args.method is not None:
        overrides['partition__method'] = None if args.method == 'none' else args.method
    if args.sampling is not None:
        overrides['partition__sampling_correction'] = args.sampling
    if args.export is not None:
        overrides['partition__export_path'] = args.export
    if args.seed is not None:
        overrides['partition__seed'] = args.seed
    if args.infomap_dir is not None:
        overrides['infomap_console__executable_dir'] = args.infomap_dir
    if args.infomap_args is not None:
        overrides['infomap_console__extra_args'] = tuple(shlex.split(args.infomap_args))
    if args.timeout is not None:
        overrides['infomap_console__timeout'] = args.timeout
        overrides['netcarto__timeout'] = args.timeout

    return cfg.update(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.matrix.exists():
        print(f"Error: Occurrence matrix not found: {args.matrix}", file=sys.stderr)
        return 1

    dataset = utils.extract_dataset_name(args.matrix)
    output_dir = args.output if args.output else Path(f"{dataset}_output")
    output_dir = output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    log_file = output_dir / f"{dataset}_partition.log"
    utils.setup_logging(log_level=args.log_level, log_file=str(log_file))

    try:
        cfg = config_from_args(args)
    except (ValueError, FileNotFoundError, ImportError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    for warning in config.validate_config(cfg):
        logger.warning(warning)

    # Tool checks only warn; the backends raise if the tool is really missing
    if cfg.partition.method == "infomap" and cfg.partition.console:
        utils.check_external_tool("Infomap", cfg.infomap_console.executable_dir)
    elif cfg.partition.method == "netcarto":
        utils.check_external_tool(cfg.netcarto.rscript)

    try:
        results = run_pipeline(
            input_path=args.matrix,
            output_dir=output_dir,
            config_obj=cfg,
            sampling_vector_path=args.sampling_file,
            dataset_name=dataset,
        )
    except KeyboardInterrupt:
        print("\n\nPartitioning interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(f"Partitioning failed with error: {e}", exc_info=True)
        print(f"\nError: Partitioning failed. Check log file: {log_file}", file=sys.stderr)
        return 1

    print(f"Localities: {results.get('n_localities', 0)}  "
          f"Groups: {results.get('n_groups', 0)}")
    for label, path in results['files'].items():
        print(f"  {label}: {path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
