"""
Tests for the configuration system.
"""

import unittest
from unittest.mock import patch
import tempfile
import shutil
import json
import os
from pathlib import Path

from biogeonet import config
from biogeonet.config import (
    PartitionConfig, InfomapConsoleConfig, NetcartoConfig, PipelineConfig,
)


class TestDefaults(unittest.TestCase):
    """Test default values."""

    def test_partition_defaults(self):
        cfg = config.get_default_config()
        self.assertFalse(cfg.partition.bipartite)
        self.assertEqual(cfg.partition.method, "infomap")
        self.assertFalse(cfg.partition.console)
        self.assertIsNone(cfg.partition.sampling_correction)
        self.assertTrue(cfg.partition.only_localities)
        self.assertIsNone(cfg.partition.export_path)

    def test_tool_defaults(self):
        cfg = config.get_default_config()
        self.assertIsNone(cfg.infomap_console.executable_dir)
        self.assertEqual(cfg.infomap_console.extra_args, ())
        self.assertEqual(cfg.netcarto.rscript, "Rscript")


class TestValidation(unittest.TestCase):
    """Test parameter validation in the dataclasses."""

    def test_invalid_method(self):
        with self.assertRaises(ValueError):
            PartitionConfig(method="walktrap")

    def test_none_string_means_no_method(self):
        self.assertIsNone(PartitionConfig(method="none").method)

    def test_invalid_sampling(self):
        with self.assertRaises(ValueError):
            PartitionConfig(sampling_correction="richness")

    def test_invalid_trials(self):
        with self.assertRaises(ValueError):
            PartitionConfig(infomap_trials=0)

    def test_paths_converted(self):
        self.assertIsInstance(PartitionConfig(export_path="out.gexf").export_path, Path)
        self.assertIsInstance(InfomapConsoleConfig(executable_dir="/opt").executable_dir, Path)

    def test_extra_args_list_becomes_tuple(self):
        self.assertEqual(InfomapConsoleConfig(extra_args=["-N", "5"]).extra_args, ("-N", "5"))

    def test_extra_args_string_is_split(self):
        cfg = InfomapConsoleConfig(extra_args="--two-level -N 5")
        self.assertEqual(cfg.extra_args, ("--two-level", "-N", "5"))

    def test_extra_args_string_keeps_quoted_words(self):
        cfg = InfomapConsoleConfig(extra_args="--out-name 'reef run'")
        self.assertEqual(cfg.extra_args, ("--out-name", "reef run"))

    def test_extra_args_none_is_empty(self):
        self.assertEqual(InfomapConsoleConfig(extra_args=None).extra_args, ())

    def test_non_positive_timeout(self):
        with self.assertRaises(ValueError):
            InfomapConsoleConfig(timeout=0)
        with self.assertRaises(ValueError):
            NetcartoConfig(timeout=-1)

    def test_invalid_log_level(self):
        with self.assertRaises(ValueError):
            PipelineConfig(log_level="LOUD")


class TestUpdate(unittest.TestCase):
    """Test nested updates."""

    def test_nested_update(self):
        cfg = config.get_default_config().update(
            partition__method="louvain",
            infomap_console__timeout=30,
            overwrite_existing=True,
        )
        self.assertEqual(cfg.partition.method, "louvain")
        self.assertEqual(cfg.infomap_console.timeout, 30)
        self.assertTrue(cfg.overwrite_existing)

    def test_update_returns_new_object(self):
        base = config.get_default_config()
        base.update(partition__bipartite=True)
        self.assertFalse(base.partition.bipartite)

    def test_update_splits_extra_args_string(self):
        cfg = config.get_default_config().update(infomap_console__extra_args="-N 5")
        self.assertEqual(cfg.infomap_console.extra_args, ("-N", "5"))

    def test_update_validates(self):
        with self.assertRaises(ValueError):
            config.get_default_config().update(partition__sampling_correction="x")


class TestFiles(unittest.TestCase):
    """Test saving and loading configuration files."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_json_round_trip(self):
        path = Path(self.tmpdir) / "config.json"
        cfg = config.get_default_config().update(
            partition__method="louvain",
            partition__export_path="graph.gexf",
            infomap_console__extra_args=("-N", "3"),
        )
        cfg.to_json(path)

        loaded = config.load_config_from_file(path)
        self.assertEqual(loaded, cfg)

    def test_partial_json(self):
        path = Path(self.tmpdir) / "partial.json"
        path.write_text(json.dumps({"partition": {"bipartite": True}}))
        loaded = config.load_config_from_file(path)
        self.assertTrue(loaded.partition.bipartite)
        self.assertEqual(loaded.partition.method, "infomap")

    @unittest.skipUnless(config.YAML_AVAILABLE, "PyYAML not installed")
    def test_yaml_template(self):
        path = Path(self.tmpdir) / "template.yaml"
        config.create_config_template(path)
        loaded = config.load_config_from_file(path)
        self.assertEqual(loaded, config.get_default_config())

    def test_extra_args_string_in_file(self):
        path = Path(self.tmpdir) / "console.json"
        path.write_text(json.dumps({"infomap_console": {"extra_args": "--two-level -N 5"}}))
        loaded = config.load_config_from_file(path)
        self.assertEqual(loaded.infomap_console.extra_args, ("--two-level", "-N", "5"))

    def test_extra_args_string_in_dict(self):
        cfg = config._dict_to_config({"infomap_console": {"extra_args": "--two-level -N 5"}})
        self.assertEqual(cfg.infomap_console.extra_args, ("--two-level", "-N", "5"))

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            config.load_config_from_file(Path(self.tmpdir) / "absent.json")

    def test_unsupported_format(self):
        path = Path(self.tmpdir) / "config.ini"
        path.write_text("[partition]\n")
        with self.assertRaises(ValueError):
            config.load_config_from_file(path)

    def test_unsupported_template_format(self):
        with self.assertRaises(ValueError):
            config.create_config_template(Path(self.tmpdir) / "t.toml", format="toml")


class TestEnvironment(unittest.TestCase):
    """Test environment variable overrides."""

    def test_overrides(self):
        env = {
            "BIOGEONET_PARTITION__METHOD": "louvain",
            "BIOGEONET_PARTITION__BIPARTITE": "yes",
            "BIOGEONET_INFOMAP_CONSOLE__TIMEOUT": "600",
        }
        with patch.dict(os.environ, env, clear=True):
            overrides = config.load_config_from_env()

        self.assertEqual(overrides, {
            "partition__method": "louvain",
            "partition__bipartite": True,
            "infomap_console__timeout": 600,
        })
        cfg = config.get_default_config().update(**overrides)
        self.assertEqual(cfg.infomap_console.timeout, 600)

    def test_extra_args_from_environment(self):
        env = {"BIOGEONET_INFOMAP_CONSOLE__EXTRA_ARGS": "--two-level -N 5"}
        with patch.dict(os.environ, env, clear=True):
            overrides = config.load_config_from_env()
        cfg = config.get_default_config().update(**overrides)
        self.assertEqual(cfg.infomap_console.extra_args, ("--two-level", "-N", "5"))

    def test_parse_values(self):
        self.assertIsNone(config._parse_env_value("none"))
        self.assertFalse(config._parse_env_value("false"))
        self.assertEqual(config._parse_env_value("2.5"), 2.5)
        self.assertEqual(config._parse_env_value("occ"), "occ")


class TestValidateConfig(unittest.TestCase):
    """Test warnings for questionable combinations."""

    def test_defaults_have_no_warnings(self):
        self.assertEqual(config.validate_config(config.get_default_config()), [])

    def test_bipartite_louvain_warns(self):
        cfg = config.get_default_config().update(partition__bipartite=True,
                                                 partition__method="louvain")
        warnings = config.validate_config(cfg)
        self.assertTrue(any("bipartite" in w for w in warnings))

    def test_console_louvain_warns(self):
        cfg = config.get_default_config().update(partition__console=True,
                                                 partition__method="louvain")
        self.assertTrue(any("Console" in w for w in config.validate_config(cfg)))

    def test_only_localities_unipartite_warns(self):
        cfg = config.get_default_config().update(partition__only_localities=False)
        self.assertEqual(len(config.validate_config(cfg)), 1)

    def test_only_localities_console_no_warning(self):
        cfg = config.get_default_config().update(partition__only_localities=False,
                                                 partition__console=True)
        self.assertEqual(config.validate_config(cfg), [])


if __name__ == '__main__':
    unittest.main()
