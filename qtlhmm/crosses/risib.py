"""Two-way recombinant inbred lines by sib mating."""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base

logger = logging.getLogger(__name__)

AA = 1
BB = 2

AXB = 0
BXA = 1


class RISIB(base.QTLCross):
    """
    On the X chromosome, ``cross_info[0]`` is the cross direction: 0 when the
    A founder is the grandmother (AxB), 1 when it is B (BxA). The grandmother
    contributes two thirds of the X chromosome.
    """

    crosstype = "risib"

    def _x_maternal(self, cross_info):
        # genotype of the grandmother's X
        if len(cross_info) > 0 and cross_info[0] == BXA:
            return BB
        return AA

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        if not is_x_chr:
            return -np.log(2.0)
        if true_gen == self._x_maternal(cross_info):
            return np.log(2.0 / 3.0)
        return -np.log(3.0)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        r = rec_frac
        if not is_x_chr:
            big_r = 4.0 * r / (1.0 + 6.0 * r)
            if gen_left == gen_right:
                return core.log1p(-big_r)
            return core.log(big_r)

        denom = core.log1p(6.0 * r)
        if gen_left == self._x_maternal(cross_info):
            if gen_left == gen_right:
                return core.log1p(2.0 * r) - denom
            return core.log(4.0 * r) - denom
        if gen_left == gen_right:
            return core.log1p(-2.0 * r) - denom
        return core.log(8.0 * r) - denom

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        big_r = super().reestimate_recombination_fraction(
            gamma, is_x_chr, cross_info, n_gen, is_female
        )
        if is_x_chr:
            # R = 16r/(3(1+6r)) averaged over the two X genotypes
            return 3.0 * big_r / (16.0 - 18.0 * big_r)
        return big_r / (4.0 - 6.0 * big_r)

    def check_cross_info(self, cross_info, any_x_chr):
        if not any_x_chr:
            return True
        if cross_info.shape[0] != 1:
            logger.warning(
                "cross_info should have 1 row, indicating the cross direction"
            )
            return False
        if not np.all(np.isin(cross_info[0], (AXB, BXA))):
            logger.warning("cross_info has invalid values; should be 0 or 1")
            return False
        return True
