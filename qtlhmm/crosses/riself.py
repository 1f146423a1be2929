"""Recombinant inbred lines by selfing, from two founders or a 2^m-way funnel."""

import logging

import numpy as np
from scipy import optimize

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)


class RISELF(base.QTLCross):
    """Two-way RIL by selfing; the X chromosome is not modelled."""

    crosstype = "riself"

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        big_r = 2.0 * rec_frac / (1.0 + 2.0 * rec_frac)
        if gen_left == gen_right:
            return core.log1p(-big_r)
        return core.log(big_r)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        big_r = super().reestimate_recombination_fraction(
            gamma, is_x_chr, cross_info, n_gen, is_female
        )
        if big_r >= 1.0:
            return np.inf
        return 0.5 * big_r / (1.0 - big_r)

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("X chr ignored for RIL by selfing.")
            return False
        return True


def founder_positions(cross_info, n_founders):
    """Funnel position (0-based) of each founder, from the founder order."""
    return invert_founder_order(np.asarray(cross_info[:n_founders]))


def invert_founder_order(order):
    """
    Invert a founder order: ``order[j]`` is the founder (1-based) at funnel
    position j; the result gives the position of each founder (0-based).
    """
    positions = np.empty(len(order), dtype=np.int64)
    positions[np.asarray(order) - 1] = np.arange(len(order))
    return positions


class RISELFK(base.QTLCross):
    """
    RIL by selfing from a funnel of 2^m founders: pairs of founders are
    crossed, then pairs of the resulting hybrids, and so on, and the final
    2^m-way hybrid is selfed to fixation.

    ``cross_info`` holds the founder order, a permutation of 1..2^m giving
    the founder at each funnel position. Genotype codes are founder indices.
    """

    def __init__(self, n_founders):
        n_levels = int(np.log2(n_founders))
        if n_founders < 4 or 2**n_levels != n_founders:
            err_msg = "Funnel RIL needs a power of 2 (at least 4) founders."
            raise ValueError(err_msg)
        self.n_founders = n_founders
        self.n_levels = n_levels
        self.n_alleles = n_founders
        self.crosstype = f"riself{n_founders}"
        self.phase_known_crosstype = self.crosstype
        # Finding every founder-order group is costly with many founders.
        self.est_map_method = "grouped" if n_founders == 4 else "founder_order"
        super().__init__()

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        return 1 <= gen <= self.n_founders

    def n_genotypes(self, is_x_chr):
        return self.n_founders

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        return -np.log(self.n_founders)

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
        return util.inbred_emission(obs_gen, true_gen, error_prob, founder_geno)

    def founder_positions(self, cross_info):
        return founder_positions(cross_info, self.n_founders)

    def conditional_step(self, level, rec_frac):
        """
        Probability of founder b at the right locus given founder a at the
        left, where ``level`` is the funnel level at which a and b first meet
        (0 when a == b).
        """
        r = rec_frac
        m = self.n_levels
        denom = 1.0 + 2.0 * r
        if level == 0:
            return (1.0 - r) ** (m - 1) / denom
        if level == m:
            return self.n_founders * r / (denom * 4.0 ** (m - 1))
        return (
            self.n_founders
            / (2.0 * denom)
            * ((1.0 - r) / 2.0) ** (m - 1 - level)
            * (r / 2.0)
            / 4.0 ** (level - 1)
        )

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        pos = founder_positions(cross_info, self.n_founders)
        level = int(pos[gen_left - 1] ^ pos[gen_right - 1]).bit_length()
        return core.log(self.conditional_step(level, rec_frac))

    def transition_matrix(self, rec_frac, is_x_chr, is_female, cross_info):
        pos = founder_positions(cross_info, self.n_founders)
        levels = np.bitwise_xor(pos[:, None], pos[None, :])
        probs = np.empty(self.n_levels + 1)
        for level in range(self.n_levels + 1):
            probs[level] = self.conditional_step(level, rec_frac)
        # bit_length of a funnel xor, for values below n_founders
        level_of = np.array([int(x).bit_length() for x in range(self.n_founders)])
        with np.errstate(divide="ignore"):
            return np.log(probs[level_of[levels]])

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        n_ind = gamma.sum()
        if n_ind <= 0:
            return 0.0
        diag = np.trace(gamma, axis1=1, axis2=2).sum() / n_ind
        diag = min(max(diag, 0.0), 1.0)
        if self.n_levels == 2:
            return (1.0 - diag) / (1.0 + 2.0 * diag)
        if self.n_levels == 3:
            return (1.0 + diag) - np.sqrt(diag * diag + 3.0 * diag)
        if diag >= 1.0:
            return 0.0
        if diag <= 0.0:
            return 1.0
        return optimize.brentq(
            lambda r: self.conditional_step(0, r) - diag, 0.0, 1.0, xtol=1e-12
        )

    def need_founder_geno(self):
        return True

    def check_founder_geno_size(self, founder_geno, n_markers):
        return base.check_founder_geno_shape(founder_geno, n_markers, self.n_founders)

    def check_founder_geno_values(self, founder_geno):
        return base.check_founder_geno_snp_values(founder_geno)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != self.n_founders:
            logger.warning(
                "cross_info should have %d rows, indicating the order of the founders",
                self.n_founders,
            )
            return False
        expected = np.arange(1, self.n_founders + 1)
        bad = ~np.all(np.sort(cross_info, axis=0) == expected[:, None], axis=0)
        if np.any(bad):
            logger.warning(
                "cross_info has invalid founder orders in %d individuals",
                int(bad.sum()),
            )
            return False
        return True

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("X chr ignored for RIL by selfing.")
            return False
        return True

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < self.n_founders:
            err_msg = f"alleles must have length {self.n_founders}."
            raise ValueError(err_msg)
        return [allele + allele for allele in alleles[: self.n_founders]]
