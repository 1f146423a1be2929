"""Backcross."""

import numpy as np

from qtlhmm import core
from qtlhmm.crosses import base

AA = 1
AB = 2
AY = 3
BY = 4


class BC(base.QTLCross):
    """
    Backcross to the A parent. On the X chromosome females are AA or AB and
    males AY or BY; observed male genotypes are coded 1 (A) or 2 (B).
    """

    crosstype = "bc"

    def is_valid_genotype(self, gen, is_observed, is_x_chr, is_female, cross_info):
        if is_observed:
            return gen in (core.MISSING, AA, AB)
        if is_x_chr and not is_female:
            return gen in (AY, BY)
        return gen in (AA, AB)

    def n_genotypes(self, is_x_chr):
        return 4 if is_x_chr else 2

    def enumerate_possible_genotypes(self, is_x_chr, is_female, cross_info):
        if is_x_chr and not is_female:
            return np.array([AY, BY])
        return np.array([AA, AB])

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
        if obs_gen not in (AA, AB):
            return 0.0
        if true_gen >= AY:
            true_gen -= 2
        if obs_gen == true_gen:
            return core.log1p(-error_prob)
        return core.log(error_prob)

    def geno2allele_matrix(self, is_x_chr):
        if is_x_chr:
            return np.array(
                [
                    [1.0, 0.0],
                    [0.5, 0.5],
                    [1.0, 0.0],
                    [0.0, 1.0],
                ]
            )
        return np.array([[1.0, 0.0], [0.5, 0.5]])

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            err_msg = "alleles must have length 2."
            raise ValueError(err_msg)
        a, b = alleles[0], alleles[1]
        result = [a + a, a + b]
        if is_x_chr:
            result += [a + "Y", b + "Y"]
        return result

    def check_is_female_vector(self, is_female, any_x_chr):
        return base.check_is_female_present(is_female, any_x_chr)
