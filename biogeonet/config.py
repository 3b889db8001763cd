"""
Configuration Management for biogeonet

This module provides the configuration system for network-based biogeographic
partitioning, built on frozen dataclasses. The configuration system supports:

1. Default parameter values (unipartite infomap, no sampling correction)
2. Loading configuration from YAML/JSON files
3. Environment variable overrides
4. Validation and type checking
5. Hierarchical configuration with component-specific settings

Configuration Structure:
- PartitionConfig: Graph construction, sampling correction and clustering method
- InfomapConsoleConfig: Location and arguments of the Infomap executable
- NetcartoConfig: Rscript invocation used by the netcarto backend
- PipelineConfig: Master configuration combining all components

Example Usage:
    >>> from biogeonet.config import get_default_config, load_config_from_file
    >>>
    >>> # Use defaults
    >>> config = get_default_config()
    >>> print(config.partition.method)
    infomap
    >>>
    >>> # Update specific parameters
    >>> custom_config = config.update(
    ...     partition__method="louvain",
    ...     partition__sampling_correction="occ",
    ... )
"""

from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Optional, List, Dict, Any, Union, Tuple
import os
import json
import logging
import shlex

logger = logging.getLogger(__name__)

# Try to import YAML support
try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False
    logger.debug("PyYAML not available; YAML config files not supported")


VALID_METHODS = ["infomap", "louvain", "netcarto"]
VALID_SAMPLING_MODES = ["occ", "dom"]


# ============================================================================
# Partition Configuration
# ============================================================================

@dataclass(frozen=True)
class PartitionConfig:
    """
    Configuration for graph construction and community detection.

    Attributes
    ----------
    bipartite : bool
        Cluster the bipartite species/locality graph instead of the projected
        locality graph (default: False)

    method : Optional[str]
        Community detection method (default: "infomap").
        Options: "infomap", "louvain", "netcarto", or None to return the graph

    console : bool
        Run the Infomap console application instead of the in-process
        infomap package (default: False). Only implemented for "infomap".

    sampling_correction : Optional[str]
        Sampling intensity proxy for the unipartite graph (default: None).
        Options: "occ" (occurrences per locality), "dom" (abundance of the
        dominant taxon). Explicit vectors are passed to the pipeline directly.

    only_localities : bool
        Report only the locality grouping (default: True). When False,
        bipartite runs also report taxa and console runs keep the module
        hierarchy

    export_path : Optional[Path]
        Write the clustered graph to this GEXF file (default: None)

    seed : Optional[int]
        Random seed forwarded to the clustering backends (default: None)

    infomap_trials : int
        Number of outer-loop trials of the in-process infomap run (default: 1)

    Notes
    -----
    Sampling correction only applies to the unipartite graph, where every
    edge weight w(u, v) is divided by s(u) + s(v).
    """
    bipartite: bool = False
    method: Optional[str] = "infomap"
    console: bool = False
    sampling_correction: Optional[str] = None
    only_localities: bool = True
    export_path: Optional[Path] = None
    seed: Optional[int] = None
    infomap_trials: int = 1

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.export_path is not None and isinstance(self.export_path, str):
            object.__setattr__(self, 'export_path', Path(self.export_path))
        if isinstance(self.method, str) and self.method.lower() == "none":
            object.__setattr__(self, 'method', None)
        if self.method is not None and self.method not in VALID_METHODS:
            raise ValueError(f"Invalid method: {self.method}")
        if (self.sampling_correction is not None
                and self.sampling_correction not in VALID_SAMPLING_MODES):
            raise ValueError(
                f"sampling_correction must be one of {VALID_SAMPLING_MODES}, "
                f"got '{self.sampling_correction}'"
            )
        if self.infomap_trials < 1:
            raise ValueError("infomap_trials must be at least 1")
        if self.bipartite and self.sampling_correction is not None:
            logger.warning(
                "sampling_correction is ignored for bipartite graphs; "
                "it only applies to the projected locality graph."
            )


# ============================================================================
# Infomap Console Configuration
# ============================================================================

@dataclass(frozen=True)
class InfomapConsoleConfig:
    """
    Configuration for the Infomap console application.

    Attributes
    ----------
    executable_dir : Optional[Path]
        Directory holding the Infomap executable. If None, the executable is
        looked up on the system PATH (default: None)

    extra_args : Tuple[str, ...]
        Arguments appended verbatim after the network and output paths. A
        string (from a config file or environment variable) is split with shlex

    timeout : Optional[float]
        Seconds to wait for the executable before giving up (default: None,
        wait indefinitely)

    os_name : Optional[str]
        Override for the detected operating system (default: None)
    """
    executable_dir: Optional[Path] = None
    extra_args: Tuple[str, ...] = ()
    timeout: Optional[float] = None
    os_name: Optional[str] = None

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.executable_dir is not None and isinstance(self.executable_dir, str):
            object.__setattr__(self, 'executable_dir', Path(self.executable_dir))
        if self.extra_args is None:
            object.__setattr__(self, 'extra_args', ())
        elif isinstance(self.extra_args, str):
            object.__setattr__(self, 'extra_args', tuple(shlex.split(self.extra_args)))
        elif isinstance(self.extra_args, list):
            object.__setattr__(self, 'extra_args', tuple(self.extra_args))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")


# ============================================================================
# Netcarto Configuration
# ============================================================================

@dataclass(frozen=True)
class NetcartoConfig:
    """
    Configuration for the netcarto backend.

    Attributes
    ----------
    rscript : str
        Rscript executable used to call the rnetcarto package (default: "Rscript")

    timeout : Optional[float]
        Seconds to wait for Rscript (default: None)
    """
    rscript: str = "Rscript"
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")


# ============================================================================
# Master Pipeline Configuration
# ============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """
    Master configuration for the complete biogeonet pipeline.

    Attributes
    ----------
    partition : PartitionConfig
        Graph construction and clustering configuration

    infomap_console : InfomapConsoleConfig
        Infomap console application configuration

    netcarto : NetcartoConfig
        Netcarto backend configuration

    log_level : str
        Logging level (default: "INFO")

    output_dir : Path
        Base output directory (default: "results")

    overwrite_existing : bool
        Overwrite existing output files (default: False)
    """
    partition: PartitionConfig = field(default_factory=PartitionConfig)
    infomap_console: InfomapConsoleConfig = field(default_factory=InfomapConsoleConfig)
    netcarto: NetcartoConfig = field(default_factory=NetcartoConfig)
    log_level: str = "INFO"
    output_dir: Path = field(default_factory=lambda: Path("results"))
    overwrite_existing: bool = False

    def __post_init__(self):
        """Validate and normalize configuration."""
        if isinstance(self.output_dir, str):
            object.__setattr__(self, 'output_dir', Path(self.output_dir))

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")

    def update(self, **kwargs) -> 'PipelineConfig':
        """
        Create a new configuration with updated values.

        Supports nested updates using double underscore notation:
        config.update(partition__method="louvain")

        Parameters
        ----------
        **kwargs
            Configuration parameters to update. Use double underscore
            for nested parameters (e.g., infomap_console__timeout)

        Returns
        -------
        PipelineConfig
            New configuration object with updates
        """
        top_level = {}
        nested = {}

        for key, value in kwargs.items():
            if '__' in key:
                component, param = key.split('__', 1)
                nested.setdefault(component, {})[param] = value
            else:
                top_level[key] = value

        for component, updates in nested.items():
            current = getattr(self, component)
            top_level[component] = replace(current, **updates)

        return replace(self, **top_level)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a nested dictionary."""
        return asdict(self)

    def to_serializable_dict(self) -> Dict[str, Any]:
        """Nested dictionary with paths as strings and tuples as lists."""
        return _convert_for_serialization(self.to_dict())

    def to_yaml(self, output_path: Union[str, Path]) -> None:
        """
        Save configuration to YAML file.

        Raises
        ------
        ImportError
            If PyYAML is not installed
        """
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to save YAML config files")

        config_dict = self.to_serializable_dict()

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {path}")

    def to_json(self, output_path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        config_dict = self.to_serializable_dict()

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")


# ============================================================================
# Helper Functions
# ============================================================================

def get_default_config() -> PipelineConfig:
    """
    Get default pipeline configuration.

    Examples
    --------
    >>> config = get_default_config()
    >>> config.partition.bipartite
    False
    """
    return PipelineConfig()


def load_config_from_file(config_path: Union[str, Path]) -> PipelineConfig:
    """
    Load configuration from YAML or JSON file.

    Automatically detects file format based on extension.

    Parameters
    ----------
    config_path : Union[str, Path]
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    PipelineConfig
        Loaded configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If file format is not supported
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in ['.yaml', '.yml']:
        if not YAML_AVAILABLE:
            raise ImportError("PyYAML is required to load YAML config files")
        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}
    elif suffix == '.json':
        with open(path, 'r') as f:
            config_dict = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}")

    logger.info(f"Loaded configuration from {path}")
    return _dict_to_config(config_dict)


def _dict_to_config(config_dict: Dict[str, Any]) -> PipelineConfig:
    """Convert a (possibly partial) dictionary to a PipelineConfig."""
    config_dict = dict(config_dict)
    nested_configs = {}

    if 'partition' in config_dict:
        nested_configs['partition'] = PartitionConfig(**config_dict.pop('partition'))

    if 'infomap_console' in config_dict:
        nested_configs['infomap_console'] = InfomapConsoleConfig(
            **config_dict.pop('infomap_console')
        )

    if 'netcarto' in config_dict:
        nested_configs['netcarto'] = NetcartoConfig(**config_dict.pop('netcarto'))

    return PipelineConfig(**nested_configs, **config_dict)


def _convert_for_serialization(obj: Any) -> Any:
    """Recursively convert Path objects and tuples for serialization."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: _convert_for_serialization(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_convert_for_serialization(item) for item in obj]
    else:
        return obj


def load_config_from_env() -> Dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Environment variables should be prefixed with BIOGEONET_
    and use double underscores for nesting:

    BIOGEONET_PARTITION__METHOD=louvain
    BIOGEONET_INFOMAP_CONSOLE__TIMEOUT=600

    Returns
    -------
    Dict[str, Any]
        Configuration overrides, suitable for PipelineConfig.update()
    """
    prefix = "BIOGEONET_"
    overrides = {}

    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            overrides[config_key] = _parse_env_value(value)

    if overrides:
        logger.debug(f"Loaded {len(overrides)} configuration overrides from environment")

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ['true', 'yes']:
        return True
    if value.lower() in ['false', 'no']:
        return False
    if value.lower() in ['none', 'null', '']:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def validate_config(config: PipelineConfig) -> List[str]:
    """
    Validate configuration and return list of warnings.

    Checks combinations that are accepted but unlikely to do what the user
    intended.

    Examples
    --------
    >>> for warning in validate_config(get_default_config()):
    ...     print(f"Warning: {warning}")
    """
    warnings = []
    part = config.partition

    if part.console and part.method != "infomap":
        warnings.append(
            f"Console mode is only implemented for infomap (method={part.method})."
        )

    if part.bipartite and part.method in ("louvain", "netcarto"):
        warnings.append(
            f"Method '{part.method}' is not implemented for bipartite graphs."
        )

    if not part.only_localities and not part.bipartite and not part.console:
        warnings.append(
            "only_localities=False has no effect on the unipartite locality graph "
            "without the console backend."
        )

    exe_dir = config.infomap_console.executable_dir
    if part.console and exe_dir is not None and not exe_dir.exists():
        warnings.append(f"Infomap executable directory not found: {exe_dir}")

    if part.export_path is not None and part.method is None and not part.bipartite:
        warnings.append(
            "Exporting without a clustering method writes the graph without group labels."
        )

    return warnings


def create_config_template(output_path: Union[str, Path], format: str = "yaml") -> None:
    """
    Create a configuration template file with the default values.

    Examples
    --------
    >>> create_config_template("my_config.yaml")
    """
    config = get_default_config()

    if format.lower() == "yaml":
        config.to_yaml(output_path)
    elif format.lower() == "json":
        config.to_json(output_path)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Created configuration template: {output_path}")
