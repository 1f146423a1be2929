"""
Intercross, and its phase-known version used for map estimation.

On the X chromosome the cross direction in ``cross_info[0]`` decides the
female genotypes: 0 for (AxB)x(AxB) gives AA or AB, 1 for (BxA)x(AxB) gives
BA or BB. Males are AY or BY in either direction.
"""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)

AA = 1
AB = 2
BB = 3

AAX = 1
ABX = 2
BAX = 3
BBX = 4
AY = 5
BY = 6

FORWARD = 0
REVERSE = 1

# SNP genotype class of each X chromosome genotype.
_X_CLASS = {AAX: AA, ABX: AB, BAX: AB, BBX: BB, AY: AA, BY: BB}


def _direction(cross_info):
    if cross_info is None or len(cross_info) == 0:
        return FORWARD
    return cross_info[0]


def _x_possible_genotypes(is_female, cross_info):
    if not is_female:
        return np.array([AY, BY])
    if _direction(cross_info) == FORWARD:
        return np.array([AAX, ABX])
    return np.array([BAX, BBX])


def _x_emission(obs_gen, true_gen, error_prob):
    if true_gen in (AY, BY):
        return util.hemizygous_emission(obs_gen, _X_CLASS[true_gen], error_prob)
    return util.diploid_emission(obs_gen, _X_CLASS[true_gen], error_prob)


class F2(base.QTLCross):
    crosstype = "f2"
    phase_known_crosstype = "f2pk"

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        if is_x_chr:
            return gen in _x_possible_genotypes(is_female, cross_info)
        return gen in (AA, AB, BB)

    def n_genotypes(self, is_x_chr):
        return 6 if is_x_chr else 3

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr:
            return _x_possible_genotypes(is_female, cross_info)
        return np.array([AA, AB, BB])

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if is_x_chr:
            return -np.log(2.0)
        if true_gen == AB:
            return -np.log(2.0)
        return -np.log(4.0)

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
        if obs_gen == core.MISSING or not self.is_valid_genotype(
            obs_gen, True, is_x_chr, is_female, cross_info
        ):
            return 0.0
        if is_x_chr:
            return _x_emission(obs_gen, true_gen, error_prob)
        return util.diploid_emission(obs_gen, true_gen, error_prob)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr:
            if gen_left == gen_right:
                return core.log1p(-rec_frac)
            return core.log(rec_frac)

        log_r = core.log(rec_frac)
        log_1mr = core.log1p(-rec_frac)
        if gen_left == AB:
            if gen_right == AB:
                return core.log(rec_frac * rec_frac + (1.0 - rec_frac) ** 2)
            return log_r + log_1mr
        if gen_right == AB:
            return np.log(2.0) + log_r + log_1mr
        if gen_left == gen_right:
            return 2.0 * log_1mr
        return 2.0 * log_r

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr:
            return 0 if gen_left == gen_right else 1
        return abs(gen_left - gen_right)

    def geno2allele_matrix(self, is_x_chr):
        if is_x_chr:
            return np.array(
                [
                    [1.0, 0.0],
                    [0.5, 0.5],
                    [0.5, 0.5],
                    [0.0, 1.0],
                    [1.0, 0.0],
                    [0.0, 1.0],
                ]
            )
        return np.array([[1.0, 0.0], [0.5, 0.5], [0.0, 1.0]])

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            err_msg = "alleles must have length 2."
            raise ValueError(err_msg)
        a, b = alleles[0], alleles[1]
        if is_x_chr:
            return [a + a, a + b + "f", a + b + "r", b + b, a + "Y", b + "Y"]
        return [a + a, a + b, b + b]

    def check_is_female_vector(self, is_female, any_x_chr):
        return base.check_is_female_present(is_female, any_x_chr)

    def check_cross_info(self, cross_info, any_x_chr):
        n_params = cross_info.shape[0]
        if not any_x_chr:
            return True
        if n_params == 0:
            logger.warning(
                "cross_info not provided, but needed to handle X chromosome"
            )
            return False
        if n_params > 1:
            logger.warning("cross_info has %d rows, but should have 1", n_params)
            return False
        if not np.all(np.isin(cross_info[0], (FORWARD, REVERSE))):
            logger.warning("cross_info has invalid values; should be 0 or 1")
            return False
        return True

    def x_covariates(self, is_female, cross_info):
        is_female = np.asarray(is_female, dtype=bool)
        n_ind = len(is_female)
        if cross_info.shape[0] > 0:
            reverse = cross_info[0] == REVERSE
        else:
            reverse = np.zeros(n_ind, dtype=bool)
        n_female = int(is_female.sum())
        n_rev_female = int((reverse & is_female).sum())
        mixed_dir = 0 < n_rev_female < n_female

        if n_female == 0:
            return np.zeros((n_ind, 0)), []
        if n_female == n_ind:
            if mixed_dir:
                return reverse.astype(np.float64).reshape(n_ind, 1), ["direction"]
            return np.zeros((n_ind, 0)), []
        sex = (~is_female).astype(np.float64)
        if not mixed_dir:
            return sex.reshape(n_ind, 1), ["sex"]
        direction = (reverse & is_female).astype(np.float64)
        return np.column_stack([sex, direction]), ["sex", "direction"]


class F2PK(F2):
    """
    Phase-known intercross: heterozygotes are split by the parent of origin
    of the A allele, which makes the two haplotypes independent Markov chains.
    """

    crosstype = "f2pk"
    phase_known_crosstype = "f2pk"

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed or is_x_chr:
            return super().is_valid_genotype(
                gen, is_observed, is_x_chr, is_female, cross_info
            )
        return gen in (AAX, ABX, BAX, BBX)

    def n_genotypes(self, is_x_chr):
        return 6 if is_x_chr else 4

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr:
            return _x_possible_genotypes(is_female, cross_info)
        return np.array([AAX, ABX, BAX, BBX])

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if is_x_chr:
            return -np.log(2.0)
        return -np.log(4.0)

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
        if obs_gen == core.MISSING or not self.is_valid_genotype(
            obs_gen, True, is_x_chr, is_female, cross_info
        ):
            return 0.0
        if is_x_chr:
            return _x_emission(obs_gen, true_gen, error_prob)
        return util.diploid_emission(obs_gen, _X_CLASS[true_gen], error_prob)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        if is_x_chr:
            return super().log_transition_probability(
                gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
            )
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        n_rec = util.mpp_nrec(gen_left, gen_right, 2, phase_known=True)
        return n_rec * core.log(rec_frac) + (2 - n_rec) * core.log1p(-rec_frac)

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr:
            return 0 if gen_left == gen_right else 1
        return util.mpp_nrec(gen_left, gen_right, 2, phase_known=True)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        if is_x_chr:
            return super().reestimate_recombination_fraction(
                gamma, is_x_chr, cross_info, n_gen, is_female
            )
        n_ind = gamma.sum()
        if n_ind <= 0:
            return 0.0
        gens = np.arange(1, n_gen + 1)
        n_rec = np.array(
            [[util.mpp_nrec(gl, gr, 2, phase_known=True) for gr in gens] for gl in gens]
        )
        return float((gamma * n_rec).sum() / (2.0 * n_ind))

    def crosstype_supported(self):
        return False

    def geno2allele_matrix(self, is_x_chr):
        if is_x_chr:
            return super().geno2allele_matrix(is_x_chr)
        return np.array([[1.0, 0.0], [0.5, 0.5], [0.5, 0.5], [0.0, 1.0]])

    def genotype_names(self, alleles, is_x_chr):
        if is_x_chr:
            return super().genotype_names(alleles, is_x_chr)
        a, b = alleles[0], alleles[1]
        return [a + a, a + b, b + a, b + b]
