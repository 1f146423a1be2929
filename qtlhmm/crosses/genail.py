"""General k-way advanced intercross lines."""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base, util
from qtlhmm.crosses.genril import check_founder_counts, founder_weights

logger = logging.getLogger(__name__)


class GENAIL(base.QTLCross):
    """
    Advanced intercross from k inbred founders mixed in the proportions of
    their counts and then randomly mated.

    ``cross_info[0]`` is the number of generations, counting the founders as
    the first; the remaining k rows are the founder counts. Along one
    haplotype the founder at the right locus is the left founder with
    probability c and otherwise drawn by weight, where c = (1-r)^(n-1) on
    autosomes and follows the sex-linked recursion on the X chromosome.
    The two haplotypes of an individual are independent.
    """

    phase_known = False

    def __init__(self, n_founders):
        if n_founders < 2:
            err_msg = "general AIL should have >= 2 founders"
            raise ValueError(err_msg)
        self.n_founders = n_founders
        self.n_alleles = n_founders
        if self.crosstype is None:
            self.crosstype = f"genail{n_founders}"
            self.phase_known_crosstype = self.crosstype
        self.n_geno_a = util.mpp_n_genotypes(n_founders, self.phase_known)
        self._first, self._second = util.mpp_allele_pairs(n_founders, self.phase_known)
        super().__init__()

    # Parameters held in cross_info.
    def n_generations(self, cross_info):
        return int(cross_info[0])

    def weights(self, cross_info):
        return founder_weights(cross_info[1 : self.n_founders + 1])

    # Genotype state space.
    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return core.MISSING <= gen <= core.OBS_NOT_AA
        if is_x_chr and not is_female:
            return self.n_geno_a < gen <= self.n_geno_a + self.n_founders
        return 1 <= gen <= self.n_geno_a

    def n_genotypes(self, is_x_chr):
        if is_x_chr:
            return self.n_geno_a + self.n_founders
        return self.n_geno_a

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr and not is_female:
            return np.arange(self.n_geno_a + 1, self.n_geno_a + self.n_founders + 1)
        return np.arange(1, self.n_geno_a + 1)

    def _alleles(self, gen):
        return self._first[gen - 1] + 1, self._second[gen - 1] + 1

    # Probability laws.
    def log_initial_probability(self, true_gen, is_x_chr, is_female, cross_info):
        self.check_genotype(true_gen, is_x_chr, is_female, cross_info)
        alpha = self.weights(cross_info)
        if is_x_chr and not is_female:
            return core.log(alpha[true_gen - self.n_geno_a - 1])
        a, b = self._alleles(true_gen)
        prob = alpha[a - 1] * alpha[b - 1]
        if a != b and not self.phase_known:
            prob *= 2.0
        return core.log(prob)

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
            founder_allele = founder_geno[true_gen - self.n_geno_a - 1]
            return util.hemizygous_emission(obs_gen, founder_allele, error_prob)
        a, b = self._alleles(true_gen)
        return util.mpp_emission(obs_gen, a, b, error_prob, founder_geno)

    def retained_linkage(self, rec_frac, is_x_chr, is_female, cross_info):
        """Probability c that a haplotype keeps its left founder, by descent."""
        n_gen = self.n_generations(cross_info)
        if not is_x_chr:
            return (1.0 - rec_frac) ** (n_gen - 1)
        c_male, c_female = 1.0, 1.0
        for _ in range(n_gen - 1):
            c_male, c_female = (
                (1.0 - rec_frac) * c_female,
                0.5 * (1.0 - rec_frac) * c_female + 0.5 * c_male,
            )
        return c_female if is_female else c_male

    def haplotype_transitions(self, rec_frac, is_x_chr, is_female, cross_info):
        alpha = self.weights(cross_info)
        c = self.retained_linkage(rec_frac, is_x_chr, is_female, cross_info)
        return c * np.eye(self.n_founders) + (1.0 - c) * alpha[None, :]

    def transition_probabilities(self, rec_frac, is_x_chr, is_female, cross_info):
        """Transition probabilities (not logged) between the possible genotypes."""
        hap = self.haplotype_transitions(rec_frac, is_x_chr, is_female, cross_info)
        if is_x_chr and not is_female:
            return hap
        a, b = self._first, self._second
        direct = hap[a[:, None], a[None, :]] * hap[b[:, None], b[None, :]]
        if self.phase_known:
            return direct
        swapped = hap[a[:, None], b[None, :]] * hap[b[:, None], a[None, :]]
        return np.where(a[None, :] == b[None, :], direct, direct + swapped)

    def log_transition_probability(
        self, gen_left, gen_right, rec_frac, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        probs = self.transition_probabilities(rec_frac, is_x_chr, is_female, cross_info)
        offset = self.n_geno_a if is_x_chr and not is_female else 0
        return core.log(probs[gen_left - offset - 1, gen_right - offset - 1])

    def transition_matrix(self, rec_frac, is_x_chr, is_female, cross_info):
        probs = self.transition_probabilities(rec_frac, is_x_chr, is_female, cross_info)
        with np.errstate(divide="ignore"):
            return np.log(probs)

    def count_recombination_events(
        self, gen_left, gen_right, is_x_chr, is_female, cross_info
    ):
        self.check_genotype(gen_left, is_x_chr, is_female, cross_info)
        self.check_genotype(gen_right, is_x_chr, is_female, cross_info)
        if is_x_chr and not is_female:
            return 0 if gen_left == gen_right else 1
        return util.mpp_nrec(gen_left, gen_right, self.n_founders, self.phase_known)

    def reestimate_recombination_fraction(
        self, gamma, is_x_chr, cross_info, n_gen, is_female=None
    ):
        return util.maximize_rec_frac(self, gamma, is_x_chr, cross_info, is_female)

    # Metadata.
    def need_founder_geno(self):
        return True

    def check_founder_geno_size(self, founder_geno, n_markers):
        return base.check_founder_geno_shape(founder_geno, n_markers, self.n_founders)

    def check_founder_geno_values(self, founder_geno):
        return base.check_founder_geno_snp_values(founder_geno)

    def check_is_female_vector(self, is_female, any_x_chr):
        return base.check_is_female_present(is_female, any_x_chr)

    def check_cross_info(self, cross_info, any_x_chr):
        if cross_info.shape[0] != self.n_founders + 1:
            logger.warning(
                "cross_info should have %d rows: no. generations and founder counts",
                self.n_founders + 1,
            )
            return False
        result = base.check_generations(cross_info[0], "1st row in cross_info")
        return check_founder_counts(cross_info[1:]) and result

    def geno2allele_matrix(self, is_x_chr):
        return util.mpp_geno2allele_matrix(self.n_founders, is_x_chr, self.phase_known)

    def genotype_names(self, alleles, is_x_chr):
        return util.mpp_genotype_names(
            alleles, self.n_founders, is_x_chr, self.phase_known
        )
