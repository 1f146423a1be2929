import numpy as np
import pytest

from . import qtlbase
import qtlhmm.core as core
from qtlhmm import crosses
from qtlhmm.crosses import base, util
from qtlhmm.crosses.riself import RISELFK, invert_founder_order

# (crosstype, is_x_chr, is_female, cross_info) for one individual.
DESIGNS = [
    ("bc", False, False, []),
    ("bc", True, True, []),
    ("bc", True, False, []),
    ("f2", False, False, []),
    ("f2", True, True, [0]),
    ("f2", True, True, [1]),
    ("f2", True, False, [0]),
    ("f2pk", False, False, []),
    ("f2pk", True, True, [1]),
    ("riself", False, False, []),
    ("risib", False, False, []),
    ("risib", True, True, [0]),
    ("risib", True, False, [1]),
    ("riself4", False, False, [2, 4, 1, 3]),
    ("riself8", False, False, [5, 3, 8, 1, 2, 7, 6, 4]),
    ("riself16", False, False, list(range(16, 0, -1))),
    ("dh", False, False, []),
    ("haploid", False, False, []),
    ("haploid", True, False, []),
    ("ail", False, False, [10]),
    ("ail", True, True, [10, 0]),
    ("ail", True, False, [10, 1]),
    ("ail", True, True, [10, 2]),
    ("ail", True, False, [10, 2]),
    ("dh6", False, False, [5]),
    ("genril4", False, False, [1, 2, 1, 1]),
    ("genail4", False, False, [8, 1, 1, 2, 1]),
    ("genail4", True, True, [8, 1, 1, 2, 1]),
    ("genail4", True, False, [8, 1, 1, 2, 1]),
    ("do", False, False, [12]),
    ("do", True, True, [12]),
    ("do", True, False, [12]),
    ("dopk", False, False, [12]),
    ("dopk", True, True, [12]),
]

# Designs whose laws define a probability distribution over the next genotype.
MARKOV_DESIGNS = DESIGNS + [("ail3", True, False, [6])]


def get_design(crosstype, cross_info):
    return crosses.get_cross(crosstype), np.array(cross_info, dtype=np.int64)


class TestProbabilityLaws(qtlbase.QTLBase):
    @pytest.mark.parametrize("design", DESIGNS + [("ail3", False, False, [6])])
    def test_initial_probabilities_sum_to_one(self, design):
        crosstype, is_x_chr, is_female, info = design
        cross, info = get_design(crosstype, info)
        init = cross.initial_vector(is_x_chr, is_female, info)
        self.assertAllClose(np.exp(init).sum(), 1.0)

    @pytest.mark.parametrize("design", MARKOV_DESIGNS)
    @pytest.mark.parametrize("rec_frac", [0.0001, 0.05, 0.3, 0.5])
    def test_transition_rows_sum_to_one(self, design, rec_frac):
        crosstype, is_x_chr, is_female, info = design
        cross, info = get_design(crosstype, info)
        step = cross.transition_matrix(rec_frac, is_x_chr, is_female, info)
        n_poss = len(cross.enumerate_possible_genotypes(is_x_chr, is_female, info))
        assert step.shape == (n_poss, n_poss)
        self.assertAllClose(np.exp(step).sum(axis=1), np.ones(n_poss), rtol=1e-8)

    @pytest.mark.parametrize(
        "design",
        [
            ("riself8", False, False, [5, 3, 8, 1, 2, 7, 6, 4]),
            ("genril4", False, False, [1, 2, 1, 1]),
            ("genail3", False, False, [6, 1, 1, 2]),
            ("genail3", True, True, [6, 1, 1, 2]),
            ("do", True, False, [12]),
        ],
    )
    def test_transition_matrix_matches_scalar_law(self, design):
        crosstype, is_x_chr, is_female, info = design
        cross, info = get_design(crosstype, info)
        fast = cross.transition_matrix(0.07, is_x_chr, is_female, info)
        slow = base.QTLCross.transition_matrix(cross, 0.07, is_x_chr, is_female, info)
        self.assertAllClose(fast, slow)

    def test_no_recombination_keeps_genotype(self):
        cross = crosses.get_cross("f2")
        info = np.zeros(0, dtype=np.int64)
        step = np.exp(cross.transition_matrix(0.0, False, False, info))
        self.assertAllClose(step, np.eye(3))

    @pytest.mark.parametrize("n_founders", [4, 8, 16])
    def test_funnel_step_sums_to_one(self, n_founders):
        cross = RISELFK(n_founders)
        for rec_frac in [0.01, 0.2, 0.5]:
            total = cross.conditional_step(0, rec_frac)
            for level in range(1, cross.n_levels + 1):
                total += 2 ** (level - 1) * cross.conditional_step(level, rec_frac)
            self.assertAllClose(total, 1.0)

    def test_funnel_step_depends_on_founder_order(self):
        cross = RISELFK(8)
        order = np.arange(1, 9)
        other = np.array([1, 3, 2, 4, 5, 6, 7, 8])
        step = cross.transition_matrix(0.1, False, False, order)
        swapped = cross.transition_matrix(0.1, False, False, other)
        # founders 1 and 2 are crossed first only in the first order
        assert step[0, 1] > step[0, 2]
        self.assertAllClose(swapped[0, 2], step[0, 1])

    def test_invert_founder_order(self):
        positions = invert_founder_order(np.array([3, 1, 4, 2]))
        np.testing.assert_array_equal(positions, [1, 3, 0, 2])


class TestTwoStateLaws(qtlbase.QTLBase):
    info = np.zeros(0, dtype=np.int64)

    @pytest.mark.parametrize("rec_frac", [0.01, 0.1, 0.3])
    def test_backcross_transition(self, rec_frac):
        cross = crosses.get_cross("bc")
        self.assertAllClose(
            cross.log_transition_probability(1, 1, rec_frac, False, False, self.info),
            np.log(1.0 - rec_frac),
        )
        self.assertAllClose(
            cross.log_transition_probability(1, 2, rec_frac, False, False, self.info),
            np.log(rec_frac),
        )

    @pytest.mark.parametrize("rec_frac", [0.01, 0.1, 0.3])
    def test_riself_transition(self, rec_frac):
        cross = crosses.get_cross("riself")
        ril_frac = 2.0 * rec_frac / (1.0 + 2.0 * rec_frac)
        self.assertAllClose(
            cross.log_transition_probability(2, 2, rec_frac, False, False, self.info),
            np.log(1.0 - ril_frac),
        )
        self.assertAllClose(
            cross.log_transition_probability(2, 1, rec_frac, False, False, self.info),
            np.log(ril_frac),
        )

    def test_riself_transition_values(self):
        cross = crosses.get_cross("riself")
        self.assertAllClose(
            cross.log_transition_probability(1, 1, 0.1, False, False, self.info),
            np.log(5.0 / 6.0),
        )
        self.assertAllClose(
            cross.log_transition_probability(1, 2, 0.1, False, False, self.info),
            np.log(1.0 / 6.0),
        )

    @pytest.mark.parametrize("rec_frac", [0.01, 0.1, 0.3])
    def test_riself_reestimate_recovers_rec_frac(self, rec_frac):
        cross = crosses.get_cross("riself")
        ril_frac = 2.0 * rec_frac / (1.0 + 2.0 * rec_frac)
        gamma = np.array([[[1.0 - ril_frac, ril_frac], [0.0, 0.0]]])
        result = cross.reestimate_recombination_fraction(
            gamma, False, np.zeros((1, 0), dtype=np.int64), 2
        )
        self.assertAllClose(result, rec_frac, rtol=1e-10)


class TestEmissions(qtlbase.QTLBase):
    def test_backcross(self):
        cross = crosses.get_cross("bc")
        info = np.zeros(0, dtype=np.int64)
        e = 0.01
        self.assertAllClose(
            cross.log_emission_probability(1, 1, e, None, False, False, info),
            np.log(0.99),
        )
        self.assertAllClose(
            cross.log_emission_probability(2, 1, e, None, False, False, info),
            np.log(0.01),
        )
        assert cross.log_emission_probability(0, 2, e, None, False, False, info) == 0
        # males on the X are observed as 1 (A) or 2 (B)
        self.assertAllClose(
            cross.log_emission_probability(2, 4, e, None, True, False, info),
            np.log(0.99),
        )

    @pytest.mark.parametrize("true_gen", [1, 2, 3])
    def test_intercross_full_calls_sum_to_one(self, true_gen):
        cross = crosses.get_cross("f2")
        info = np.zeros(0, dtype=np.int64)
        total = 0.0
        for obs in (1, 2, 3):
            total += np.exp(
                cross.log_emission_probability(
                    obs, true_gen, 0.02, None, False, False, info
                )
            )
        self.assertAllClose(total, 1.0)

    def test_intercross_partial_calls(self):
        cross = crosses.get_cross("f2")
        info = np.zeros(0, dtype=np.int64)
        e = 0.02
        not_bb = core.OBS_NOT_BB
        self.assertAllClose(
            cross.log_emission_probability(not_bb, 1, e, None, False, False, info),
            np.log1p(-e / 2.0),
        )
        self.assertAllClose(
            cross.log_emission_probability(not_bb, 3, e, None, False, False, info),
            np.log(e),
        )

    def test_multiparent_uninformative_founders(self):
        founder_geno = np.array([1, 0, 3])
        # one allele from a founder with a missing genotype
        assert util.mpp_emission(core.OBS_AB, 1, 2, 0.01, founder_geno) == 0.0
        self.assertAllClose(
            util.mpp_emission(core.OBS_AA, 1, 2, 0.01, founder_geno), np.log(0.99)
        )
        self.assertAllClose(
            util.mpp_emission(core.OBS_AB, 1, 3, 0.01, founder_geno), np.log(0.99)
        )

    def test_inbred_emission(self):
        founder_geno = np.array([1, 3, 2])
        self.assertAllClose(
            util.inbred_emission(3, 2, 0.01, founder_geno), np.log(0.99)
        )
        self.assertAllClose(
            util.inbred_emission(1, 2, 0.01, founder_geno), np.log(0.01)
        )
        assert util.inbred_emission(1, 3, 0.01, founder_geno) == 0.0


class TestReestimation(qtlbase.QTLBase):
    gamma = np.array([[[3.0, 1.0], [1.0, 5.0]]])
    no_info = np.zeros((1, 0), dtype=np.int64)

    def test_backcross(self):
        cross = crosses.get_cross("bc")
        result = cross.reestimate_recombination_fraction(
            self.gamma, False, self.no_info, 2
        )
        self.assertAllClose(result, 0.2)

    def test_riself(self):
        cross = crosses.get_cross("riself")
        result = cross.reestimate_recombination_fraction(
            self.gamma, False, self.no_info, 2
        )
        self.assertAllClose(result, 0.5 * 0.2 / 0.8)

    def test_risib(self):
        cross = crosses.get_cross("risib")
        result = cross.reestimate_recombination_fraction(
            self.gamma, False, self.no_info, 2
        )
        self.assertAllClose(result, 0.2 / (4.0 - 6.0 * 0.2))

    def test_phase_known_intercross(self):
        cross = crosses.get_cross("f2pk")
        gamma = np.zeros((1, 4, 4))
        gamma[0, 0, 0] = 3.0
        gamma[0, 0, 1] = 1.0
        result = cross.reestimate_recombination_fraction(gamma, False, self.no_info, 4)
        self.assertAllClose(result, 1.0 / 8.0)

    def test_empty_gamma(self):
        cross = crosses.get_cross("bc")
        gamma = np.zeros((1, 2, 2))
        result = cross.reestimate_recombination_fraction(gamma, False, self.no_info, 2)
        assert result == 0.0

    @pytest.mark.parametrize("n_founders", [4, 8, 16])
    @pytest.mark.parametrize("rec_frac", [0.01, 0.1, 0.3])
    def test_funnel_inverts_step(self, n_founders, rec_frac):
        cross = RISELFK(n_founders)
        diag = cross.conditional_step(0, rec_frac)
        gamma = np.zeros((1, n_founders, n_founders))
        gamma[0, 0, 0] = diag
        gamma[0, 0, 1] = 1.0 - diag
        info = np.arange(1, n_founders + 1)[np.newaxis, :]
        result = cross.reestimate_recombination_fraction(gamma, False, info, n_founders)
        self.assertAllClose(result, rec_frac, rtol=1e-6)

    def test_numeric_step_matches_riself(self):
        # two equally weighted founders give RIL by selfing
        cross = crosses.get_cross("genril2")
        info = np.array([[1, 1]])
        result = cross.reestimate_recombination_fraction(self.gamma, False, info, 2)
        self.assertAllClose(result, 0.5 * 0.2 / 0.8, rtol=1e-5)

    @pytest.mark.parametrize("crosstype", ["ail", "ail3", "dh6", "do", "dopk"])
    def test_not_implemented(self, crosstype):
        cross = crosses.get_cross(crosstype)
        with pytest.raises(NotImplementedError):
            cross.reestimate_recombination_fraction(self.gamma, False, self.no_info, 2)


class TestFactory:
    @pytest.mark.parametrize("crosstype", ["xyz", "genril1", "genail", "riself32"])
    def test_unknown_crosstype(self, crosstype):
        with pytest.raises(core.UnsupportedCrossError, match="not yet supported"):
            crosses.get_cross(crosstype)

    def test_unsupported_is_value_error(self):
        with pytest.raises(ValueError):
            crosses.get_cross("abc")

    @pytest.mark.parametrize("crosstype", ["genril5", "genail7", "riself16", "do"])
    def test_crosstype_name(self, crosstype):
        assert crosses.get_cross(crosstype).crosstype == crosstype

    @pytest.mark.parametrize(
        "crosstype, phase_known",
        [("f2", "f2pk"), ("do", "dopk"), ("bc", "bc"), ("genail3", "genail3")],
    )
    def test_phase_known_twin(self, crosstype, phase_known):
        cross = crosses.get_cross(crosstype)
        assert crosses.get_phase_known_cross(cross).crosstype == phase_known

    def test_funnel_needs_power_of_two(self):
        with pytest.raises(ValueError):
            RISELFK(6)

    def test_internal_designs_not_supported(self):
        assert not crosses.get_cross("f2pk").crosstype_supported()
        assert not crosses.get_cross("dopk").crosstype_supported()
        assert crosses.get_cross("f2").crosstype_supported()


class TestGenotypeChecks:
    def test_invalid_genotype_raises(self):
        cross = crosses.get_cross("bc")
        info = np.zeros(0, dtype=np.int64)
        with pytest.raises(core.GenotypeValueError):
            cross.log_initial_probability(3, False, False, info)

    def test_checks_can_be_disabled(self):
        cross = crosses.get_cross("bc")
        info = np.zeros(0, dtype=np.int64)
        previous = core.set_genotype_checks(False)
        try:
            assert not core.genotype_checks_enabled()
            result = cross.log_initial_probability(3, False, False, info)
        finally:
            core.set_genotype_checks(previous)
        np.testing.assert_allclose(result, -np.log(2.0))
        assert core.genotype_checks_enabled() == previous

    def test_male_x_genotype_in_female(self):
        cross = crosses.get_cross("f2")
        with pytest.raises(core.GenotypeValueError):
            cross.log_initial_probability(5, True, True, np.array([0]))


class TestMetadata:
    @pytest.mark.parametrize(
        "crosstype, is_x_chr",
        [
            ("bc", False),
            ("bc", True),
            ("f2", False),
            ("f2", True),
            ("ail", True),
            ("ail3", False),
            ("genail4", True),
            ("do", True),
        ],
    )
    def test_geno2allele_rows_sum_to_one(self, crosstype, is_x_chr):
        cross = crosses.get_cross(crosstype)
        transform = cross.geno2allele_matrix(is_x_chr)
        assert transform.shape[0] == cross.n_genotypes(is_x_chr)
        np.testing.assert_allclose(transform.sum(axis=1), 1.0)

    def test_genotype_names(self):
        assert crosses.get_cross("f2").genotype_names(["A", "B"], True) == [
            "AA",
            "ABf",
            "ABr",
            "BB",
            "AY",
            "BY",
        ]
        assert crosses.get_cross("genail3").genotype_names(["A", "B", "C"], False) == [
            "AA",
            "AB",
            "BB",
            "AC",
            "BC",
            "CC",
        ]
        assert crosses.get_cross("haploid").genotype_names(["A", "B"], False) == [
            "A",
            "B",
        ]

    def test_genotype_names_need_alleles(self):
        with pytest.raises(ValueError):
            crosses.get_cross("bc").genotype_names(["A"], False)

    def test_mpp_codes(self):
        assert util.mpp_encode_alleles(3, 2, 4) == 5
        assert util.mpp_encode_alleles(2, 3, 4, phase_known=True) == 7
        assert util.mpp_decode_geno(5, 4) == (2, 3)
        assert util.mpp_nrec(2, 4, 3) == 1
        assert util.mpp_nrec(1, 6, 3) == 2

    def test_count_recombination_events(self):
        info = np.zeros(0, dtype=np.int64)
        f2 = crosses.get_cross("f2")
        assert f2.count_recombination_events(1, 3, False, False, info) == 2
        assert f2.count_recombination_events(2, 2, False, False, info) == 0
        f2pk = crosses.get_cross("f2pk")
        assert f2pk.count_recombination_events(2, 3, False, False, info) == 2

    def test_check_cross_info(self):
        riself4 = crosses.get_cross("riself4")
        good = np.array([[1, 2], [2, 1], [3, 4], [4, 3]])
        bad = np.array([[1, 2], [1, 1], [3, 4], [4, 3]])
        assert riself4.check_cross_info(good, False)
        assert not riself4.check_cross_info(bad, False)
        f2 = crosses.get_cross("f2")
        assert f2.check_cross_info(np.zeros((0, 2), dtype=np.int64), False)
        assert not f2.check_cross_info(np.zeros((0, 2), dtype=np.int64), True)
        assert not f2.check_cross_info(np.array([[0, 2]]), True)
        ail = crosses.get_cross("ail")
        assert not ail.check_cross_info(np.array([[1, 5]]), False)

    def test_check_handle_x_chr(self):
        assert crosses.get_cross("f2").check_handle_x_chr(True)
        assert not crosses.get_cross("riself").check_handle_x_chr(True)
        assert crosses.get_cross("riself").check_handle_x_chr(False)

    def test_founder_geno_checks(self):
        cross = crosses.get_cross("genril3")
        founder_geno = np.array([[1, 3], [3, 1], [1, 1]])
        assert cross.need_founder_geno()
        assert cross.check_founder_geno_size(founder_geno, 2)
        assert not cross.check_founder_geno_size(founder_geno, 3)
        assert cross.check_founder_geno_values(founder_geno)
        assert not cross.check_founder_geno_values(founder_geno + 1)

    def test_x_covariates(self):
        f2 = crosses.get_cross("f2")
        is_female = np.array([True, True, False, False])
        forward = np.zeros((1, 4), dtype=np.int64)
        covar, names = f2.x_covariates(is_female, forward)
        assert names == ["sex"]
        np.testing.assert_array_equal(covar[:, 0], [0, 0, 1, 1])

        mixed = np.array([[0, 1, 0, 1]])
        covar, names = f2.x_covariates(is_female, mixed)
        assert names == ["sex", "direction"]
        np.testing.assert_array_equal(covar[:, 1], [0, 1, 0, 0])

        covar, names = f2.x_covariates(np.ones(4, dtype=bool), forward)
        assert covar.shape == (4, 0)
        assert names == []
