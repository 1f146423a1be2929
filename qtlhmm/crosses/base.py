"""Base class for the cross designs, with the two-genotype default laws."""

import logging

import numpy as np

from qtlhmm import core

logger = logging.getLogger(__name__)


class QTLCross:
    """
    A breeding design: its genotype state space and the initial, emission and
    transition probability laws of the HMM over true genotypes.

    The defaults describe two equally likely genotypes, 1 and 2, that switch
    with probability equal to the recombination fraction. Designs override the
    pieces that differ. Instances hold no per-computation state.

    ``cross_info`` arguments to the per-individual laws are 1-d integer
    arrays of that individual's cross parameters. ``founder_geno`` arguments
    to the emission law are the founder genotypes at one marker.
    """

    crosstype = None
    phase_known_crosstype = None
    n_alleles = 2
    # "grouped", "founder_order", or None when the map cannot be estimated.
    est_map_method = "grouped"

    def __init__(self):
        if self.phase_known_crosstype is None:
            self.phase_known_crosstype = self.crosstype

    def __repr__(self):
        return f"{type(self).__name__}(crosstype={self.crosstype!r})"

    # Genotype state space.
    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed and gen == core.MISSING:
            return True
        return gen in (1, 2)

    def n_genotypes(self, is_x_chr):
        return 2

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        return np.arange(1, self.n_genotypes(is_x_chr) + 1)

    def check_genotype(self, gen, is_x_chr, is_female, cross_info):
        if not core.genotype_checks_enabled():
            return
        if not self.is_valid_genotype(gen, False, is_x_chr, is_female, cross_info):
            err_msg = (
                f"Genotype value {gen} not allowed for cross type {self.crosstype}."
            )
            raise core.GenotypeValueError(err_msg)

    # Probability laws, all in natural log space.
    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        return -np.log(2.0)

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
        if obs_gen == true_gen:
            return core.log1p(-error_prob)
        return core.log(error_prob)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if gen_left == gen_right:
            return core.log1p(-rec_frac)
        return core.log(rec_frac)

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        return 0 if gen_left == gen_right else 1

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        """
        M-step for one marker interval.

        :param numpy.ndarray gamma: Expected counts of adjacent genotype pairs,
            summed over the individuals of each group, of size
            (n_groups, n_gen, n_gen) and indexed by genotype code minus one.
        :param bool is_x_chr: Whether the interval is on the X chromosome.
        :param numpy.ndarray cross_info: Cross parameters of each group, of
            size (n_groups, n_params).
        :param int n_gen: Number of genotypes on this chromosome.
        :param numpy.ndarray is_female: Sex of each group.
        :return: The new recombination fraction.
        :rtype: float
        """
        n_ind = gamma.sum()
        if n_ind <= 0:
            return 0.0
        diagsum = np.trace(gamma, axis1=1, axis2=2).sum()
        return max(1.0 - diagsum / n_ind, 0.0)

    # Whole-matrix versions of the laws, over the possible genotypes.
    def initial_vector(self, is_x_chr, is_female, cross_info):
        gens = self.enumerate_possible_genotypes(is_x_chr, is_female, cross_info)
        return np.array(
            [
                self.log_initial_probability(g, is_x_chr, is_female, cross_info)
                for g in gens
            ],
            dtype=np.float64,
        )

    def emission_matrix(
        self, error_prob, founder_geno, n_obs, is_x_chr, is_female, cross_info
    ):
        gens = self.enumerate_possible_genotypes(is_x_chr, is_female, cross_info)
        result = np.zeros((n_obs, len(gens)), dtype=np.float64)
        for obs_gen in range(n_obs):
            for j, true_gen in enumerate(gens):
                result[obs_gen, j] = self.log_emission_probability(
                    obs_gen,
                    true_gen,
                    error_prob,
                    founder_geno,
                    is_x_chr,
                    is_female,
                    cross_info,
                )
        return result

    def transition_matrix(self, rec_frac, is_x_chr, is_female, cross_info):
        gens = self.enumerate_possible_genotypes(is_x_chr, is_female, cross_info)
        result = np.empty((len(gens), len(gens)), dtype=np.float64)
        for i, left in enumerate(gens):
            for j, right in enumerate(gens):
                result[i, j] = self.log_transition_probability(
                    left, right, rec_frac, is_x_chr, is_female, cross_info
                )
        return result

    # Metadata and input validation.
    def crosstype_supported(self):
        return True

    def need_founder_geno(self):
        return False

    def check_founder_geno_size(self, founder_geno, n_markers):
        return True

    def check_founder_geno_values(self, founder_geno):
        return True

    def check_cross_info(self, cross_info, any_x_chr):
        return True

    def check_is_female_vector(self, is_female, any_x_chr):
        return True

    def check_handle_x_chr(self, any_x_chr):
        return True

    def geno2allele_matrix(self, is_x_chr):
        """Genotype to allele dosage transform, or None if genotypes are alleles."""
        return None

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            err_msg = "alleles must have length 2."
            raise ValueError(err_msg)
        return [alleles[0] + alleles[0], alleles[1] + alleles[1]]

    def x_covariates(self, is_female, cross_info):
        """
        Covariates needed under the null hypothesis for the X chromosome.

        :return: An array of size (n_ind, n_covar) and the covariate names.
        :rtype: tuple
        """
        is_female = np.asarray(is_female, dtype=bool)
        n_ind = len(is_female)
        n_female = int(is_female.sum())
        if n_female == 0 or n_female == n_ind:
            return np.zeros((n_ind, 0)), []
        return (~is_female).astype(np.float64).reshape(n_ind, 1), ["sex"]


def check_is_female_present(is_female, any_x_chr):
    """Shared sex-vector check for designs that model the X chromosome."""
    if not any_x_chr:
        return True
    if is_female is None or len(is_female) == 0:
        logger.warning("is_female not provided, but needed to handle X chromosome")
        return False
    return True


def check_founder_geno_shape(founder_geno, n_markers, n_founders):
    result = True
    if founder_geno is None or np.ndim(founder_geno) != 2:
        logger.warning("founder_geno should be a founders x markers matrix")
        return False
    fg_f, fg_mar = founder_geno.shape
    if fg_mar != n_markers:
        logger.warning("founder_geno has incorrect number of markers")
        result = False
    if fg_f != n_founders:
        logger.warning("founder_geno should have %d founders", n_founders)
        result = False
    return result


def check_founder_geno_snp_values(founder_geno):
    if not np.all(np.isin(founder_geno, (0, 1, 3))):
        logger.warning("founder_geno contains invalid values; should be in {0, 1, 3}")
        return False
    return True


def check_generations(row, name="cross_info", minimum=2):
    """Check a row of generation counts: present and at least ``minimum``."""
    result = True
    if np.any(row < 0):
        logger.warning("%s has missing values (it shouldn't)", name)
        result = False
    if np.any((row >= 0) & (row < minimum)):
        logger.warning(
            "%s has invalid values; no. generations should be >= %d", name, minimum
        )
        result = False
    return result
