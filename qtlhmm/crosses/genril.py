"""General k-way recombinant inbred lines."""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util

logger = logging.getLogger(__name__)


def founder_weights(counts):
    counts = np.asarray(counts, dtype=np.float64)
    return counts / counts.sum()


class GENRIL(base.QTLCross):
    """
    RIL from k founders contributing in the proportions given by
    ``cross_info``, one row of (non-negative integer) counts per founder.

    A line is fixed for one founder's haplotype at each locus. Between loci
    the founder changes with probability rho = 4r/(1+2r), in which case the
    new founder is drawn by its weight; with equal weights this is RIL by
    selfing.
    """

    def __init__(self, n_founders):
        if n_founders < 2:
            err_msg = "general RIL should have >= 2 founders"
            raise ValueError(err_msg)
        self.n_founders = n_founders
        self.n_alleles = n_founders
        self.crosstype = f"genril{n_founders}"
        self.phase_known_crosstype = self.crosstype
        super().__init__()

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        return 1 <= gen <= self.n_founders

    def n_genotypes(self, is_x_chr):
        return self.n_founders

    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        return core.log(founder_weights(cross_info)[true_gen - 1])

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

    def haplotype_transitions(self, rec_frac, cross_info):
        """Founder-to-founder transition probabilities along a line."""
        alpha = founder_weights(cross_info)
        rho = 4.0 * rec_frac / (1.0 + 2.0 * rec_frac)
        return (1.0 - rho) * np.eye(self.n_founders) + rho * alpha[None, :]

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        probs = self.haplotype_transitions(rec_frac, cross_info)
        return core.log(probs[gen_left - 1, gen_right - 1])

    def transition_matrix(self, rec_frac, is_x_chr, is_female, cross_info):
        with np.errstate(divide="ignore"):
            return np.log(self.haplotype_transitions(rec_frac, cross_info))

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        return util.maximize_rec_frac(self, gamma, is_x_chr, cross_info, is_female)

    def need_founder_geno(self):
        return True

    def check_founder_geno_size(self, founder_geno, n_markers):
        return base.check_founder_geno_shape(founder_geno, n_markers, self.n_founders)

    def check_founder_geno_values(self, founder_geno):
        return base.check_founder_geno_snp_values(founder_geno)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != self.n_founders:
            logger.warning(
                "cross_info should have %d rows, with founder counts", self.n_founders
            )
            return False
        return check_founder_counts(cross_info)

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("X chr ignored for general RIL.")
            return False
        return True

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < self.n_founders:
            err_msg = f"alleles must have length {self.n_founders}."
            raise ValueError(err_msg)
        return [allele + allele for allele in alleles[: self.n_founders]]


def check_founder_counts(counts):
    result = True
    if np.any(counts < 0):
        logger.warning("cross_info has negative founder counts")
        result = False
    if counts.shape[1] > 0 and np.any(counts.sum(axis=0) <= 0):
        logger.warning("cross_info has individuals whose founder counts are all 0")
        result = False
    return result
