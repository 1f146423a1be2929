"""
Two-way advanced intercross lines.

``cross_info[0]`` is the number of generations (at least 2) and the optional
``cross_info[1]`` is the cross direction: 0 for AxB, 1 for BxA, 2 for a
balanced design. A missing direction is taken to be balanced.
"""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)

AA = 1
AB = 2
BB = 3
AY = 4
BY = 5

AXB = 0
BXA = 1
BALANCED = 2

LOG2 = np.log(2.0)


def _generations_and_direction(cross_info):
    n_gen = int(cross_info[0])
    direction = int(cross_info[1]) if len(cross_info) > 1 else BALANCED
    return n_gen, direction


def _x_a_frequencies(n_gen):
    """Log frequency of the A allele on the X in females and males, for AxB."""
    two_thirds = np.log(2.0 / 3.0)
    if n_gen % 2 == 1:
        log_f = two_thirds + np.log1p(-np.exp(-(n_gen + 1) * LOG2))
        log_m = two_thirds + np.logaddexp(0.0, -n_gen * LOG2)
    else:
        log_f = two_thirds + np.logaddexp(0.0, -(n_gen + 1) * LOG2)
        log_m = two_thirds + np.log1p(-np.exp(-n_gen * LOG2))
    return log_f, log_m


def _diploid_step(left, right, p11, p12, p21, p22):
    """
    Step between unordered genotypes built from two independent haplotype
    chains, where pij is the probability of allele j at the right locus given
    allele i at the left locus.
    """
    if left == AA:
        if right == AA:
            return 2.0 * core.log(p11)
        if right == AB:
            return LOG2 + core.log(p11) + core.log(p12)
        return 2.0 * core.log(p12)
    if left == AB:
        if right == AA:
            return core.log(p11) + core.log(p21)
        if right == AB:
            return core.log(p11 * p22 + p12 * p21)
        return core.log(p12) + core.log(p22)
    if right == AA:
        return 2.0 * core.log(p21)
    if right == AB:
        return LOG2 + core.log(p22) + core.log(p21)
    return 2.0 * core.log(p22)


class AIL(base.QTLCross):
    crosstype = "ail"
    est_map_method = None

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        if is_x_chr and not is_female:
            return gen in (AY, BY)
        return gen in (AA, AB, BB)

    def n_genotypes(self, is_x_chr):
        return 5 if is_x_chr else 3

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr and not is_female:
            return np.array([AY, BY])
        return np.array([AA, AB, BB])

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if not is_x_chr or _generations_and_direction(cross_info)[1] == BALANCED:
            if is_x_chr and not is_female:
                return -LOG2
            if true_gen == AB:
                return -LOG2
            return -2.0 * LOG2

        n_gen, direction = _generations_and_direction(cross_info)
        log_f, log_m = _x_a_frequencies(n_gen)
        log_1mf = np.log1p(-np.exp(log_f))
        log_1mm = np.log1p(-np.exp(log_m))
        if direction == BXA:
            log_f, log_1mf = log_1mf, log_f
            log_m, log_1mm = log_1mm, log_m

        if is_female:
            if true_gen == AA:
                return 2.0 * log_f
            if true_gen == AB:
                return LOG2 + log_f + log_1mf
            return 2.0 * log_1mf
        if true_gen == AY:
            return log_m
        return log_1mm

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
        if is_x_chr and not is_female:
            allele = util.FOUNDER_AA if true_gen == AY else util.FOUNDER_BB
            return util.hemizygous_emission(obs_gen, allele, error_prob)
        return util.diploid_emission(obs_gen, true_gen, error_prob)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        n_gen, direction = _generations_and_direction(cross_info)
        r = rec_frac

        if not is_x_chr:
            # haplotype switch probability R = [1 - (1-2r)(1-r)^(s-2)]/2
            tmp = (1.0 - 2.0 * r) * (1.0 - r) ** (n_gen - 2)
            big_r = 0.5 * (1.0 - tmp)
            return _diploid_step(
                gen_left, gen_right, 1.0 - big_r, big_r, big_r, 1.0 - big_r
            )

        if direction == BALANCED:
            rm, rf = self._x_balanced_switch(r, n_gen)
            if not is_female:
                if gen_left == gen_right:
                    return core.log1p(-rm)
                return core.log(rm)
            return _diploid_step(gen_left, gen_right, 1.0 - rf, rf, rf, 1.0 - rf)

        m11, f11 = self._x_aa_haplotype_frequencies(r, n_gen)
        if is_female:
            q = 2.0 / 3.0 + (1.0 / 3.0) * (-0.5) ** n_gen
            h11 = f11
        else:
            q = 2.0 / 3.0 + (1.0 / 3.0) * (-0.5) ** (n_gen - 1)
            h11 = m11
        p11 = h11 / q
        p21 = (q - h11) / (1.0 - q)
        p12 = 1.0 - p11
        p22 = 1.0 - p21
        if direction == BXA:
            # swap the roles of A and B
            p11, p12, p21, p22 = p22, p21, p12, p11

        if is_female:
            return _diploid_step(gen_left, gen_right, p11, p12, p21, p22)
        if gen_left == AY:
            return core.log(p11 if gen_right == AY else p12)
        return core.log(p21 if gen_right == AY else p22)

    @staticmethod
    def _x_balanced_switch(r, n_gen):
        z = np.sqrt((1.0 - r) * (9.0 - r))
        w = (1.0 - r + z) / 4.0
        y = (1.0 - r - z) / 4.0
        wk = w ** (n_gen - 2)
        yk = y ** (n_gen - 2)
        base_term = 2.0 + (1.0 - 2.0 * r) * (wk + yk)
        rm = 1.0 - 0.25 * (base_term + (3.0 - 5.0 * r + 2.0 * r * r) / z * (wk - yk))
        rf = 1.0 - 0.25 * (base_term + (3.0 - 6.0 * r + r * r) / z * (wk - yk))
        return rm, rf

    @staticmethod
    def _x_aa_haplotype_frequencies(r, n_gen):
        """Frequency of the AA two-locus haplotype on the X in males and females."""
        m11_prev, f11_prev = 1.0, 0.5
        m11, f11 = m11_prev, f11_prev
        for i in range(2, n_gen + 1):
            q_prev2 = 2.0 / 3.0 + (1.0 / 3.0) * (-0.5) ** (i - 3)
            q_prev = 2.0 / 3.0 + (1.0 / 3.0) * (-0.5) ** (i - 2)
            m11 = (1.0 - r) * f11_prev + r * q_prev * q_prev2
            f11 = (
                m11_prev / 2.0
                + (1.0 - r) / 2.0 * f11_prev
                + (r / 2.0) * q_prev * q_prev2
            )
            m11_prev, f11_prev = m11, f11
        return m11, f11

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr and not is_female:
            return 0 if gen_left == gen_right else 1
        return abs(gen_left - gen_right)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        err_msg = "est_map not yet implemented for AILs."
        raise NotImplementedError(err_msg)

    def geno2allele_matrix(self, is_x_chr):
        return util.mpp_geno2allele_matrix(2, is_x_chr)

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            err_msg = "alleles must have length 2."
            raise ValueError(err_msg)
        return util.mpp_genotype_names(alleles[:2], 2, is_x_chr)

    def check_is_female_vector(self, is_female, any_x_chr):
        return base.check_is_female_present(is_female, any_x_chr)

    def check_cross_info(self, cross_info, any_x_chr):
        n_params = cross_info.shape[0]
        if n_params == 0:
            logger.warning(
                "cross_info should at least have one row, with no. generations"
            )
            return False
        result = base.check_generations(cross_info[0], "1st row in cross_info")
        if n_params == 1 and any_x_chr:
            logger.warning(
                "cross_info should have two rows (no. generations and cross direction)"
            )
            result = False
        if n_params > 2:
            logger.warning(
                "cross_info should have no more than 2 rows "
                "(no. generations and cross direction)"
            )
            result = False
        if n_params > 1 and not np.all(np.isin(cross_info[1], (AXB, BXA, BALANCED))):
            logger.warning(
                "2nd row in cross_info contains invalid values; should be 0, 1, or 2."
            )
            result = False
        return result
