import numpy as np
import pytest

import qtlhmm
import qtlhmm.core as core


def get_inputs(**kwargs):
    inputs = {
        "crosstype": "f2",
        "genotypes": np.array([[1, 2, 3], [2, 0, 3], [3, 3, 1]]),
        "founder_geno": None,
        "is_x_chr": False,
        "is_female": np.array([True, False, True]),
        "cross_info": np.zeros((0, 3), dtype=np.int64),
        "rec_frac": np.array([0.1, 0.1]),
        "marker_index": np.arange(3),
        "error_prob": 0.002,
    }
    inputs.update(kwargs)
    return inputs


def compute(inputs):
    return qtlhmm.compute_genotype_probabilities(
        inputs["crosstype"],
        inputs["genotypes"],
        inputs["founder_geno"],
        inputs["is_x_chr"],
        inputs["is_female"],
        inputs["cross_info"],
        inputs["rec_frac"],
        inputs["marker_index"],
        inputs["error_prob"],
    )


class TestCheckInputs:
    def test_valid(self):
        probs = compute(get_inputs())
        assert probs.shape == (3, 3, 3)

    def test_defaults(self):
        probs = compute(get_inputs(is_female=None, cross_info=None))
        assert probs.shape == (3, 3, 3)

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"genotypes": np.array([1, 2, 3])}, "2d array"),
            ({"genotypes": np.zeros((0, 3), dtype=np.int64)}, "at least one marker"),
            ({"genotypes": np.array([[1, 6, 3]] * 3)}, "invalid values"),
            ({"genotypes": np.array([[1, -1, 3]] * 3)}, "invalid values"),
            ({"is_female": np.array([True, False])}, "length\\(is_female\\)"),
            ({"cross_info": np.zeros((0, 2), dtype=np.int64)}, "ncol\\(cross_info\\)"),
            ({"marker_index": np.array([], dtype=np.int64)}, "non-empty"),
            ({"marker_index": np.array([0, 1, 3])}, "out of range"),
            ({"marker_index": np.array([0, -2, 2])}, "out of range"),
            ({"rec_frac": np.array([0.1])}, "length\\(rec_frac\\)"),
            ({"rec_frac": np.array([0.1, 0.6])}, "rec_frac must be"),
            ({"rec_frac": np.array([-0.1, 0.1])}, "rec_frac must be"),
            ({"rec_frac": np.array([np.nan, 0.1])}, "rec_frac must be"),
            ({"error_prob": 1.5}, "error_prob must be"),
            ({"error_prob": -0.1}, "error_prob must be"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            compute(get_inputs(**kwargs))

    def test_pseudomarkers_need_matching_rec_frac(self):
        inputs = get_inputs(marker_index=np.array([0, -1, 1, 2]))
        with pytest.raises(ValueError, match="length\\(rec_frac\\)"):
            compute(inputs)
        inputs["rec_frac"] = np.array([0.05, 0.05, 0.1])
        assert compute(inputs).shape == (3, 3, 4)

    def test_x_chr_needs_sex(self):
        inputs = get_inputs(
            crosstype="bc", genotypes=np.ones((3, 3), dtype=np.int64), is_x_chr=True
        )
        inputs["is_female"] = None
        with pytest.raises(ValueError, match="is_female not valid"):
            compute(inputs)

    def test_x_chr_cross_direction(self):
        inputs = get_inputs(is_x_chr=True, cross_info=np.array([[0, 2, 1]]))
        with pytest.raises(ValueError, match="cross_info not valid"):
            compute(inputs)
        inputs["cross_info"] = np.array([[0, 1, 1]])
        assert compute(inputs).shape == (6, 3, 3)

    def test_founder_geno_needed(self):
        inputs = get_inputs(
            crosstype="riself4",
            genotypes=np.array([[1, 3, 1], [3, 3, 1], [1, 1, 0]]),
            cross_info=np.array([[1, 2, 3], [2, 3, 4], [3, 4, 1], [4, 1, 2]]),
        )
        with pytest.raises(ValueError, match="founder_geno is needed"):
            compute(inputs)
        inputs["founder_geno"] = np.ones((4, 2), dtype=np.int64)
        with pytest.raises(ValueError, match="incorrect dimensions"):
            compute(inputs)
        inputs["founder_geno"] = np.full((4, 3), 2)
        with pytest.raises(ValueError, match="founder_geno has invalid values"):
            compute(inputs)
        inputs["founder_geno"] = np.array(
            [[1, 1, 3], [3, 1, 1], [1, 3, 1], [3, 3, 3]]
        )
        assert compute(inputs).shape == (4, 3, 3)

    def test_funnel_must_be_permutation(self):
        inputs = get_inputs(
            crosstype="riself4",
            founder_geno=np.array([[1, 1, 3], [3, 1, 1], [1, 3, 1], [3, 3, 3]]),
            cross_info=np.array([[1, 2, 3], [2, 3, 4], [3, 4, 1], [3, 1, 2]]),
        )
        with pytest.raises(ValueError, match="cross_info not valid"):
            compute(inputs)

    def test_check_inputs_returns_arrays(self):
        cross = qtlhmm.crosses.get_cross("bc")
        result = qtlhmm.check_inputs(
            cross,
            [[1, 2], [2, 2]],
            None,
            False,
            None,
            None,
            [0.1],
            [0, 1],
            0.01,
        )
        genotypes, founder_geno, is_female, cross_info, rec_frac, marker_index = (
            result
        )
        assert genotypes.dtype == np.int64
        assert founder_geno is None
        np.testing.assert_array_equal(is_female, [False, False])
        assert cross_info.shape == (0, 2)
        assert rec_frac.dtype == np.float64
        np.testing.assert_array_equal(marker_index, [0, 1])


class TestReestimateMapInputs:
    def reestimate(self, **kwargs):
        params = {"max_iterations": 10, "tol": 1e-6}
        params.update(kwargs)
        inputs = get_inputs()
        return qtlhmm.reestimate_map(
            inputs["crosstype"],
            inputs["genotypes"],
            None,
            False,
            inputs["is_female"],
            inputs["cross_info"],
            None,
            None,
            inputs["rec_frac"],
            inputs["error_prob"],
            params["max_iterations"],
            params["tol"],
            False,
        )

    def test_negative_iterations(self):
        with pytest.raises(ValueError, match="max_iterations"):
            self.reestimate(max_iterations=-1)

    def test_negative_tolerance(self):
        with pytest.raises(ValueError, match="tol"):
            self.reestimate(tol=-1e-6)


class TestUnsupportedCrosses:
    @pytest.mark.parametrize("crosstype", ["f2pk", "dopk", "nonsense", "genril1"])
    def test_unsupported(self, crosstype):
        with pytest.raises(core.UnsupportedCrossError, match="not yet supported"):
            compute(get_inputs(crosstype=crosstype))

    def test_unsupported_is_value_error(self):
        with pytest.raises(ValueError):
            qtlhmm.genoprob_to_alleleprob("dopk", np.full((2, 1, 1), 0.5), False)


class TestCountCrossovers:
    def test_intercross(self):
        genotypes = np.array([[1, 1, 3], [2, 1, 0], [3, 1, 3], [0, 1, 1]])
        result = qtlhmm.count_crossovers("f2", genotypes, False, None, None)
        np.testing.assert_array_equal(result, [2, 0, 2])

    def test_backcross_x_chr(self):
        genotypes = np.array([[1, 3, 4], [2, 3, 3], [2, 4, 3]])
        is_female = np.array([True, False, False])
        result = qtlhmm.count_crossovers("bc", genotypes, True, is_female, None)
        np.testing.assert_array_equal(result, [1, 1, 1])

    def test_impossible_genotype(self):
        genotypes = np.array([[1, 3], [2, 1]])
        is_female = np.array([True, True])
        with pytest.raises(ValueError, match="individual 1"):
            qtlhmm.count_crossovers("bc", genotypes, True, is_female, None)

    def test_wrong_sex_length(self):
        with pytest.raises(ValueError, match="length\\(is_female\\)"):
            qtlhmm.count_crossovers(
                "bc", np.ones((2, 3), dtype=np.int64), True, [True], None
            )


class TestXCovariates:
    def test_intercross_sex_and_direction(self):
        is_female = np.array([True, True, False, False])
        cross_info = np.array([[0, 1, 0, 1]])
        covar, names = qtlhmm.x_covariates("f2", is_female, cross_info)
        assert names == ["sex", "direction"]
        np.testing.assert_array_equal(covar[:, 0], [0, 0, 1, 1])
        np.testing.assert_array_equal(covar[:, 1], [0, 1, 0, 0])

    def test_intercross_one_direction(self):
        is_female = np.array([True, True, False, False])
        cross_info = np.array([[0, 0, 1, 1]])
        covar, names = qtlhmm.x_covariates("f2", is_female, cross_info)
        assert names == ["sex"]
        assert covar.shape == (4, 1)

    def test_backcross_one_sex(self):
        covar, names = qtlhmm.x_covariates("bc", np.ones(4, dtype=bool), None)
        assert covar.shape == (4, 0)
        assert names == []
