"""Six-way doubled haploids, as in maize MAGIC populations."""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)

N_FOUNDERS = 6


class DH6(base.QTLCross):
    """``cross_info[0]`` is the number of generations of intercrossing."""

    crosstype = "dh6"
    n_alleles = N_FOUNDERS
    est_map_method = None

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        return 1 <= gen <= N_FOUNDERS

    def n_genotypes(self, is_x_chr):
        return N_FOUNDERS

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        return -np.log(N_FOUNDERS)

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

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        n_gen = int(cross_info[0])
        p = (1.0 + (5.0 - 6.0 * rec_frac) * (1.0 - rec_frac) ** (n_gen - 2)) / 6.0
        if gen_left == gen_right:
            return core.log(p)
        return core.log1p(-p) - np.log(N_FOUNDERS - 1.0)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        err_msg = "est_map not yet implemented for 6-way doubled haploids."
        raise NotImplementedError(err_msg)

    def need_founder_geno(self):
        return True

    def check_founder_geno_size(self, founder_geno, n_markers):
        return base.check_founder_geno_shape(founder_geno, n_markers, N_FOUNDERS)

    def check_founder_geno_values(self, founder_geno):
        return base.check_founder_geno_snp_values(founder_geno)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != 1:
            logger.warning(
                "cross_info should have 1 row, indicating the number of generations"
            )
            return False
        return base.check_generations(cross_info[0])

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("X chr ignored for 6-way doubled haploids.")
            return False
        return True

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < N_FOUNDERS:
            err_msg = f"alleles must have length {N_FOUNDERS}."
            raise ValueError(err_msg)
        return [allele + allele for allele in alleles[:N_FOUNDERS]]
