"""
Diversity Outbred-style eight-way outcross, and its phase-known version used
for map estimation.

The eight founders contribute equally and ``cross_info[0]`` is the number of
generations of outbreeding, so the probability laws are those of an
eight-way general AIL with equal founder weights.
"""

import logging

import numpy as np

from qtlhmm.crosses import base
from qtlhmm.crosses.genail import GENAIL

logger = logging.getLogger(__name__)

N_FOUNDERS = 8


class DO(GENAIL):
    crosstype = "do"
    phase_known_crosstype = "dopk"
    est_map_method = None

    def __init__(self):
        super().__init__(N_FOUNDERS)

    def weights(self, cross_info):
        return np.full(N_FOUNDERS, 1.0 / N_FOUNDERS)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != 1:
            logger.warning(
                "cross_info should have 1 row, indicating the number of generations"
            )
            return False
        return base.check_generations(cross_info[0])

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        err_msg = "est_map not yet implemented for Diversity Outbred crosses."
        raise NotImplementedError(err_msg)


class DOPK(DO):
    """
    Phase-known genotypes: code (a-1)*8 + b for maternal founder a and
    paternal founder b, then 65..72 for males on the X chromosome.
    """

    crosstype = "dopk"
    phase_known_crosstype = "dopk"
    phase_known = True

    def crosstype_supported(self):
        return False
