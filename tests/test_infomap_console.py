"""
Tests for the Infomap console backend.

The console application itself is never run: subprocess.run is patched with
a fake that writes a .tree file into the output directory it is given, the
way Infomap does.

Tests cover:
- Command line layout and extra arguments
- Tree rows renamed after the graph vertices
- Failure modes (exit status, timeout, missing result, missing executable)
- Cleanup of the temporary directory
"""

import unittest
from unittest.mock import patch
import tempfile
import shutil
import subprocess
from pathlib import Path

import networkx as nx

from biogeonet.config import InfomapConsoleConfig
from biogeonet.infomap_console import run_infomap_console
from biogeonet.platforms import UnsupportedPlatformError
from biogeonet.tree import TreeParseError
from biogeonet.utils import ExternalToolError

TREE_TEXT = (
    "# v1.1.0\n"
    "# ./Infomap graph.net out/\n"
    '1:1 0.3 "1" 1\n'
    '1:2 0.2 "2" 2\n'
    '2:1 0.3 "3" 3\n'
    '2:2 0.2 "4" 4\n'
)


def make_graph():
    graph = nx.Graph()
    graph.add_edge("Paris", "Lyon", weight=2.0)
    graph.add_edge("Lyon", "Nice", weight=1.0)
    graph.add_edge("Nice", "Oslo", weight=0.5)
    return graph


class FakeInfomap:
    """Stand-in for subprocess.run that records calls and writes a tree file."""

    def __init__(self, tree_text=TREE_TEXT):
        self.tree_text = tree_text
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        out_dir = Path(cmd[2])
        self.network_text = Path(cmd[1]).read_text()
        if self.tree_text is not None:
            (out_dir / "graph.tree").write_text(self.tree_text)
        return subprocess.CompletedProcess(cmd, 0, stdout=None, stderr="")


class TestRunInfomapConsole(unittest.TestCase):
    """Test successful console runs."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        (Path(self.tmpdir) / "Infomap").write_text("")
        self.config = InfomapConsoleConfig(
            executable_dir=Path(self.tmpdir),
            extra_args=("--two-level",),
            os_name="linux",
        )
        self.graph = make_graph()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_rows_named_after_vertices(self):
        fake = FakeInfomap()
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            tree = run_infomap_console(self.graph, self.config)

        self.assertEqual(list(tree.index), ["Paris", "Lyon", "Nice", "Oslo"])
        self.assertEqual(tree.loc["Paris", "h1"], 1)
        self.assertEqual(tree.loc["Oslo", "h1"], 2)

    def test_command_line(self):
        fake = FakeInfomap()
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            run_infomap_console(self.graph, self.config, extra_args="-N 10")

        cmd, kwargs = fake.calls[0]
        self.assertEqual(cmd[0], str(Path(self.tmpdir) / "Infomap"))
        self.assertTrue(cmd[1].endswith("graph.net"))
        self.assertEqual(cmd[3:], ["--two-level", "-N", "10"])
        self.assertTrue(kwargs["check"])

    def test_network_file_has_weights(self):
        fake = FakeInfomap()
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            run_infomap_console(self.graph, self.config)

        self.assertIn("*vertices 4", fake.network_text.lower())
        self.assertIn("2.0", fake.network_text)

    def test_temporary_directory_removed(self):
        fake = FakeInfomap()
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            run_infomap_console(self.graph, self.config)

        self.assertFalse(Path(fake.calls[0][0][2]).exists())

    def test_windows_executable_name(self):
        (Path(self.tmpdir) / "Infomap.exe").write_text("")
        config = InfomapConsoleConfig(executable_dir=Path(self.tmpdir), os_name="windows")
        fake = FakeInfomap()
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            run_infomap_console(self.graph, config)

        self.assertTrue(fake.calls[0][0][0].endswith("Infomap.exe"))


class TestRunInfomapConsoleErrors(unittest.TestCase):
    """Test console failure handling."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        (Path(self.tmpdir) / "Infomap").write_text("")
        self.config = InfomapConsoleConfig(executable_dir=Path(self.tmpdir), os_name="linux")
        self.graph = make_graph()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_missing_executable(self):
        config = InfomapConsoleConfig(executable_dir=Path(self.tmpdir) / "bin", os_name="linux")
        with self.assertRaises(ExternalToolError) as cm:
            run_infomap_console(self.graph, config)
        self.assertIn("Infomap", str(cm.exception))

    def test_unsupported_os(self):
        config = InfomapConsoleConfig(executable_dir=Path(self.tmpdir), os_name="plan9")
        with self.assertRaises(UnsupportedPlatformError):
            run_infomap_console(self.graph, config)

    def test_nonzero_exit(self):
        error = subprocess.CalledProcessError(1, "Infomap", stderr="bad network")
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=error):
            with self.assertRaises(ExternalToolError) as cm:
                run_infomap_console(self.graph, self.config)
        self.assertIn("bad network", str(cm.exception))

    def test_timeout(self):
        config = InfomapConsoleConfig(executable_dir=Path(self.tmpdir), os_name="linux",
                                      timeout=5)
        error = subprocess.TimeoutExpired("Infomap", 5)
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=error) as mock_run:
            with self.assertRaises(ExternalToolError):
                run_infomap_console(self.graph, config)
        self.assertEqual(mock_run.call_args.kwargs["timeout"], 5)

    def test_no_tree_file(self):
        fake = FakeInfomap(tree_text=None)
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            with self.assertRaises(ExternalToolError):
                run_infomap_console(self.graph, self.config)
        self.assertFalse(Path(fake.calls[0][0][2]).exists())

    def test_tree_size_mismatch(self):
        short_tree = "\n".join(TREE_TEXT.splitlines()[:4]) + "\n"
        fake = FakeInfomap(tree_text=short_tree)
        with patch('biogeonet.infomap_console.subprocess.run', side_effect=fake):
            with self.assertRaises(TreeParseError):
                run_infomap_console(self.graph, self.config)


if __name__ == '__main__':
    unittest.main()
