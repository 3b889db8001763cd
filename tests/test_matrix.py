"""
Unit tests for occurrence matrix handling.

Tests cover:
- Incidence conversion (thresholding, idempotence)
- Matrix validation (identifiers, numeric values)
- Reading matrices and sampling vectors from delimited files
- Sampling intensity vectors ("occ", "dom", explicit)
"""

import unittest
import tempfile
import shutil
from pathlib import Path

import numpy as np
import pandas as pd

from biogeonet import matrix
from biogeonet.matrix import (
    OccurrenceMatrixError, SamplingVectorError, SamplingCorrection,
)


def make_occurrences():
    return pd.DataFrame(
        {
            "A": [3, 0, 1],
            "B": [1, 2, 0],
            "C": [0, 5, 4],
            "D": [0, 0, 1],
        },
        index=["sp1", "sp2", "sp3"],
    )


class TestToIncidence(unittest.TestCase):
    """Test incidence conversion."""

    def test_values_above_one_become_one(self):
        inc = matrix.to_incidence(make_occurrences())
        self.assertEqual(inc.loc["sp1", "A"], 1)
        self.assertEqual(inc.loc["sp2", "C"], 1)
        self.assertEqual(inc.loc["sp3", "C"], 1)

    def test_zero_and_one_unchanged(self):
        occ = make_occurrences()
        inc = matrix.to_incidence(occ)
        self.assertEqual(inc.loc["sp1", "B"], 1)
        self.assertEqual(inc.loc["sp1", "C"], 0)
        self.assertEqual(inc.loc["sp3", "B"], 0)

    def test_binary_matrix_returned_unchanged(self):
        binary = pd.DataFrame([[0, 1], [1, 1]], index=["x", "y"], columns=["L1", "L2"])
        pd.testing.assert_frame_equal(matrix.to_incidence(binary), binary)

    def test_idempotent(self):
        once = matrix.to_incidence(make_occurrences())
        twice = matrix.to_incidence(once)
        pd.testing.assert_frame_equal(once, twice)

    def test_input_not_modified(self):
        occ = make_occurrences()
        matrix.to_incidence(occ)
        self.assertEqual(occ.loc["sp2", "C"], 5)

    def test_shape_and_labels_kept(self):
        occ = make_occurrences()
        inc = matrix.to_incidence(occ)
        self.assertEqual(inc.shape, occ.shape)
        self.assertEqual(list(inc.index), list(occ.index))
        self.assertEqual(list(inc.columns), list(occ.columns))

    def test_fractional_abundances(self):
        occ = pd.DataFrame([[0.5, 2.5]], index=["sp"], columns=["L1", "L2"])
        inc = matrix.to_incidence(occ)
        # Only values greater than 1 are truncated
        self.assertEqual(inc.loc["sp", "L1"], 0.5)
        self.assertEqual(inc.loc["sp", "L2"], 1)


class TestValidateOccurrenceMatrix(unittest.TestCase):
    """Test identifier and value checks."""

    def test_valid_matrix_passes(self):
        matrix.validate_occurrence_matrix(make_occurrences())

    def test_empty_matrix_rejected(self):
        with self.assertRaises(OccurrenceMatrixError):
            matrix.validate_occurrence_matrix(pd.DataFrame())

    def test_duplicate_localities_rejected(self):
        occ = pd.DataFrame([[1, 1]], index=["sp"], columns=["L1", "L1"])
        with self.assertRaises(OccurrenceMatrixError) as cm:
            matrix.validate_occurrence_matrix(occ)
        self.assertIn("L1", str(cm.exception))

    def test_duplicate_species_rejected(self):
        occ = pd.DataFrame([[1], [2]], index=["sp", "sp"], columns=["L1"])
        with self.assertRaises(OccurrenceMatrixError):
            matrix.validate_occurrence_matrix(occ)

    def test_empty_identifier_rejected(self):
        occ = pd.DataFrame([[1, 0]], index=["sp"], columns=["L1", " "])
        with self.assertRaises(OccurrenceMatrixError):
            matrix.validate_occurrence_matrix(occ)

    def test_non_numeric_rejected(self):
        occ = pd.DataFrame({"L1": [1, 0], "L2": ["x", "y"]}, index=["a", "b"])
        with self.assertRaises(OccurrenceMatrixError) as cm:
            matrix.validate_occurrence_matrix(occ)
        self.assertIn("L2", str(cm.exception))


class TestReadFiles(unittest.TestCase):
    """Test reading matrices and sampling vectors."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_read_csv_matrix(self):
        path = Path(self.tmpdir) / "occ.csv"
        make_occurrences().to_csv(path)
        occ = matrix.read_occurrence_matrix(path)
        self.assertEqual(occ.shape, (3, 4))
        self.assertEqual(list(occ.columns), ["A", "B", "C", "D"])
        self.assertEqual(occ.loc["sp2", "C"], 5)

    def test_read_tsv_matrix(self):
        path = Path(self.tmpdir) / "occ.tsv"
        make_occurrences().to_csv(path, sep="\t")
        occ = matrix.read_occurrence_matrix(path)
        self.assertEqual(occ.shape, (3, 4))

    def test_numeric_identifiers_become_strings(self):
        path = Path(self.tmpdir) / "cells.csv"
        pd.DataFrame([[1, 0], [0, 2]], index=[10, 20], columns=["101", "102"]).to_csv(path)
        occ = matrix.read_occurrence_matrix(path)
        self.assertEqual(list(occ.index), ["10", "20"])
        self.assertEqual(list(occ.columns), ["101", "102"])

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            matrix.read_occurrence_matrix(Path(self.tmpdir) / "absent.csv")

    def test_read_sampling_vector(self):
        path = Path(self.tmpdir) / "samp.csv"
        pd.DataFrame({"locality": ["A", "B"], "effort": [10, 2.5]}).to_csv(path, index=False)
        sampvec = matrix.read_sampling_vector(path)
        self.assertEqual(sampvec["A"], 10.0)
        self.assertEqual(sampvec["B"], 2.5)

    def test_sampling_vector_needs_two_columns(self):
        path = Path(self.tmpdir) / "samp.csv"
        pd.DataFrame({"locality": ["A", "B"]}).to_csv(path, index=False)
        with self.assertRaises(SamplingVectorError):
            matrix.read_sampling_vector(path)


class TestSamplingVector(unittest.TestCase):
    """Test sampling intensity proxies."""

    def test_occ_is_column_sum(self):
        sampvec = matrix.sampling_vector(make_occurrences(), "occ")
        self.assertEqual(sampvec.to_dict(), {"A": 4.0, "B": 3.0, "C": 9.0, "D": 1.0})

    def test_dom_is_column_max(self):
        sampvec = matrix.sampling_vector(make_occurrences(), SamplingCorrection.DOMINANT)
        self.assertEqual(sampvec.to_dict(), {"A": 3.0, "B": 2.0, "C": 5.0, "D": 1.0})

    def test_uses_untruncated_values(self):
        occ = make_occurrences()
        inc_sum = matrix.sampling_vector(matrix.to_incidence(occ), "occ")
        occ_sum = matrix.sampling_vector(occ, "occ")
        self.assertGreater(occ_sum["C"], inc_sum["C"])

    def test_explicit_mapping(self):
        sampvec = matrix.sampling_vector(make_occurrences(), {"A": 1, "B": 2})
        self.assertEqual(sampvec.dtype, np.float64)
        self.assertEqual(sampvec["B"], 2.0)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            matrix.sampling_vector(make_occurrences(), "richness")


class TestCheckSamplingVector(unittest.TestCase):
    """Test sampling vector coverage checks."""

    def test_missing_locality(self):
        with self.assertRaises(SamplingVectorError) as cm:
            matrix.check_sampling_vector(pd.Series({"A": 1.0}), ["A", "B"])
        self.assertIn("B", str(cm.exception))

    def test_non_positive_value(self):
        with self.assertRaises(SamplingVectorError):
            matrix.check_sampling_vector(pd.Series({"A": 1.0, "B": 0.0}), ["A", "B"])

    def test_nan_value(self):
        with self.assertRaises(SamplingVectorError):
            matrix.check_sampling_vector(pd.Series({"A": 1.0, "B": np.nan}), ["A", "B"])

    def test_extra_entries_allowed(self):
        matrix.check_sampling_vector(pd.Series({"A": 1.0, "B": 2.0, "Z": 3.0}), ["A", "B"])


if __name__ == '__main__':
    unittest.main()
