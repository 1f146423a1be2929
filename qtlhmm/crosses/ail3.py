"""
Three-way advanced intercross lines: all F1 hybrids formed, followed by
random mating in a large population. ``cross_info[0]`` is the number of
generations.

Autosome and female X genotypes are the unordered founder pairs 1..6; male X
genotypes are 7..9, one per founder.
"""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)

N_FOUNDERS = 3
N_GENO_A = 6
N_GENO_X = 9
LOG2 = np.log(2.0)


def _x_terms(rf, n_gen):
    z = np.sqrt((1.0 - rf) * (9.0 - rf))
    lo = ((1.0 - rf - z) / 4.0) ** (n_gen - 2)
    hi = ((1.0 - rf + z) / 4.0) ** (n_gen - 2)
    return z, lo, hi


def _male_x_paa(rf, n_gen):
    z, lo, hi = _x_terms(rf, n_gen)
    wa = (1.0 - rf + z) / (2.0 * z)
    wb = (-1.0 + rf + z) / (2.0 * z)
    return (
        (1.0 - rf) / 3.0 * (wa * lo + wb * hi)
        + (2.0 - rf)
        / 6.0
        * ((1.0 - rf - z) / 2.0 * wa * lo + (1.0 - rf + z) / 2.0 * wb * hi)
        + (
            (rf * rf + rf * (z - 5.0)) / (9.0 * (3.0 + rf + z)) * wa * lo
            + (rf * rf - rf * (z + 5.0)) / (9.0 * (3.0 + rf - z)) * wb * hi
            + 1.0 / 9.0
        )
    )


def _female_x_paa(rf, n_gen):
    z, lo, hi = _x_terms(rf, n_gen)
    return (
        (1.0 - rf) / 3.0 * ((-1.0 / z) * lo + (1.0 / z) * hi)
        + (2.0 - rf)
        / 6.0
        * (
            (1.0 - rf - z) / 2.0 * (-1.0 / z) * lo
            + (1.0 - rf + z) / 2.0 * (1.0 / z) * hi
        )
        + (
            (rf * rf + rf * (z - 5.0)) / (9.0 * (3.0 + rf + z)) * (-1.0 / z) * lo
            + (rf * rf - rf * (z + 5.0)) / (9.0 * (3.0 + rf - z)) * (1.0 / z) * hi
            + 1.0 / 9.0
        )
    )


def _autosome_paa(rf, n_gen):
    return (1.0 - (-2.0 + 3.0 * rf) * (1.0 - rf) ** (n_gen - 2)) / 9.0


class AIL3(base.QTLCross):
    crosstype = "ail3"
    n_alleles = N_FOUNDERS
    est_map_method = None

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        if is_x_chr and not is_female:
            return N_GENO_A < gen <= N_GENO_X
        return 1 <= gen <= N_GENO_A

    def n_genotypes(self, is_x_chr):
        return N_GENO_X if is_x_chr else N_GENO_A

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr and not is_female:
            return np.arange(N_GENO_A + 1, N_GENO_X + 1)
        return np.arange(1, N_GENO_A + 1)

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if is_x_chr and not is_female:
            return -np.log(3.0)
        if util.mpp_is_het(true_gen, N_FOUNDERS):
            return LOG2 - np.log(9.0)
        return -np.log(9.0)

    def log_emission_probability(
        self,
        obs_gen,
        true_gen,
        error_prob,
        founder_geno,
        is_x_chr,
        is_female,
        cross_info,
    ):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if obs_gen == core.MISSING:
            return 0.0
        if is_x_chr and not is_female:
            founder_allele = founder_geno[true_gen - N_GENO_A - 1]
            return util.hemizygous_emission(obs_gen, founder_allele, error_prob)
        allele1, allele2 = util.mpp_decode_geno(true_gen, N_FOUNDERS)
        return util.mpp_emission(obs_gen, allele1, allele2, error_prob, founder_geno)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        n_gen = int(cross_info[0])
        rf = rec_frac
        if is_x_chr and rf < 1e-8:
            rf = 1e-8

        if is_x_chr and not is_female:
            big_r = 1.0 - 3.0 * _male_x_paa(rf, n_gen)
            if gen_left == gen_right:
                return core.log1p(-big_r)
            return core.log(big_r) - LOG2

        if is_x_chr:
            big_r = 1.0 - 3.0 * _female_x_paa(rf, n_gen)
        else:
            big_r = 1.0 - 3.0 * _autosome_paa(rf, n_gen)
        return self._diploid_step(gen_left, gen_right, big_r)

    @staticmethod
    def _diploid_step(gen_left, gen_right, big_r):
        left = util.mpp_decode_geno(gen_left, N_FOUNDERS)
        right = util.mpp_decode_geno(gen_right, N_FOUNDERS)
        log_half_r = core.log(big_r) - LOG2
        log_1mr = core.log1p(-big_r)
        left_hom = left[0] == left[1]
        right_hom = right[0] == right[1]

        if left_hom and right_hom:
            if left[0] == right[0]:
                return 2.0 * log_1mr
            return 2.0 * log_half_r
        if left_hom:
            if left[0] in right:
                return log_1mr + log_half_r
            return 2.0 * log_half_r
        if right_hom:
            if right[0] in left:
                return log_1mr + log_half_r
            return 2.0 * log_half_r
        if left == right:
            return core.log((1.0 - big_r) ** 2 + big_r * big_r / 4.0)
        # AB -> BC: (R/2)^2 + (R/2)(1-R)
        return log_half_r + core.log1p(-big_r / 2.0)

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr and gen_left > N_GENO_A and gen_right > N_GENO_A:
            return 0 if gen_left == gen_right else 1
        return util.mpp_nrec(gen_left, gen_right, N_FOUNDERS)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        err_msg = "est_map not yet implemented for 3-way AILs."
        raise NotImplementedError(err_msg)

    def need_founder_geno(self):
        return True

    def check_founder_geno_size(self, founder_geno, n_markers):
        return base.check_founder_geno_shape(founder_geno, n_markers, N_FOUNDERS)

    def check_founder_geno_values(self, founder_geno):
        return base.check_founder_geno_snp_values(founder_geno)

    def check_is_female_vector(self, is_female, any_x_chr):
        return base.check_is_female_present(is_female, any_x_chr)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != 1:
            logger.warning("cross_info should have one row, with no. generations")
            return False
        return base.check_generations(cross_info[0])

    def geno2allele_matrix(self, is_x_chr):
        return util.mpp_geno2allele_matrix(N_FOUNDERS, is_x_chr)

    def genotype_names(self, alleles, is_x_chr):
        return util.mpp_genotype_names(alleles, N_FOUNDERS, is_x_chr)
