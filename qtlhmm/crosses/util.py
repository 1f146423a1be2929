"""Genotype encodings and emission rules shared by the multi-parent designs."""

import math

import numpy as np
from scipy import optimize

from qtlhmm import core

FOUNDER_MISSING = 0
FOUNDER_AA = 1
FOUNDER_AB = 2
FOUNDER_BB = 3


def mpp_n_genotypes(n_alleles, phase_known=False):
    if phase_known:
        return n_alleles * n_alleles
    return n_alleles * (n_alleles + 1) // 2


def mpp_encode_alleles(allele1, allele2, n_alleles, phase_known=False):
    """
    Return the genotype code of a pair of founder alleles (1-based).

    Unordered genotypes are numbered AA, AB, BB, AC, BC, CC, ..., so the pair
    (a, b) with a <= b gets code b*(b-1)/2 + a. Phase-known genotypes are
    numbered (a-1)*n_alleles + b, with the first allele from the mother.
    """
    if phase_known:
        return (allele1 - 1) * n_alleles + allele2
    a, b = min(allele1, allele2), max(allele1, allele2)
    return b * (b - 1) // 2 + a


def mpp_decode_geno(gen, n_alleles, phase_known=False):
    """Inverse of mpp_encode_alleles."""
    if phase_known:
        return (gen - 1) // n_alleles + 1, (gen - 1) % n_alleles + 1
    b = int(math.ceil((math.sqrt(8 * gen + 1) - 1) / 2))
    a = gen - b * (b - 1) // 2
    return a, b


def mpp_is_het(gen, n_alleles, phase_known=False):
    allele1, allele2 = mpp_decode_geno(gen, n_alleles, phase_known)
    return allele1 != allele2


def mpp_allele_pairs(n_alleles, phase_known=False):
    """Arrays of the first and second allele (0-based) for codes 1..n_gen."""
    n_gen = mpp_n_genotypes(n_alleles, phase_known)
    pairs = np.array(
        [mpp_decode_geno(g, n_alleles, phase_known) for g in range(1, n_gen + 1)]
    )
    return pairs[:, 0] - 1, pairs[:, 1] - 1


def mpp_nrec(gen_left, gen_right, n_alleles, phase_known=False):
    left = mpp_decode_geno(gen_left, n_alleles, phase_known)
    right = mpp_decode_geno(gen_right, n_alleles, phase_known)
    if phase_known:
        return int(left[0] != right[0]) + int(left[1] != right[1])
    if left == right or left == right[::-1]:
        return 0
    if left[0] in right or left[1] in right:
        return 1
    return 2


def mpp_genotype_names(alleles, n_alleles, is_x_chr, phase_known=False):
    if len(alleles) != n_alleles:
        err_msg = f"alleles must have length {n_alleles}."
        raise ValueError(err_msg)
    n_gen = mpp_n_genotypes(n_alleles, phase_known)
    result = []
    for g in range(1, n_gen + 1):
        a, b = mpp_decode_geno(g, n_alleles, phase_known)
        result.append(alleles[a - 1] + alleles[b - 1])
    if is_x_chr:
        result += [allele + "Y" for allele in alleles]
    return result


def mpp_geno2allele_matrix(n_alleles, is_x_chr, phase_known=False):
    n_gen = mpp_n_genotypes(n_alleles, phase_known)
    n_rows = n_gen + n_alleles if is_x_chr else n_gen
    result = np.zeros((n_rows, n_alleles))
    first, second = mpp_allele_pairs(n_alleles, phase_known)
    for g in range(n_gen):
        result[g, first[g]] += 0.5
        result[g, second[g]] += 0.5
    if is_x_chr:
        result[n_gen:, :] = np.eye(n_alleles)
    return result


def _log_match(error_prob):
    return core.log1p(-error_prob)


def hemizygous_emission(obs_gen, founder_allele, error_prob):
    """Emission for one founder allele observed as a homozygous SNP call."""
    if founder_allele == FOUNDER_AA:
        if obs_gen in (core.OBS_AA, core.OBS_NOT_BB):
            return _log_match(error_prob)
        if obs_gen in (core.OBS_BB, core.OBS_NOT_AA):
            return core.log(error_prob)
    elif founder_allele == FOUNDER_BB:
        if obs_gen in (core.OBS_BB, core.OBS_NOT_AA):
            return _log_match(error_prob)
        if obs_gen in (core.OBS_AA, core.OBS_NOT_BB):
            return core.log(error_prob)
    return 0.0


def mpp_emission(obs_gen, allele1, allele2, error_prob, founder_geno):
    """
    Emission for a diploid genotype made of two founder alleles, given the
    SNP genotypes of the founders at the marker.

    Founder genotypes that are missing or heterozygous carry no information.
    When only one founder allele is known, a heterozygous call is
    uninformative and homozygous calls are scored against that allele.

    :param int obs_gen: Observed SNP genotype, in 0..5.
    :param int allele1: First founder allele (1-based).
    :param int allele2: Second founder allele (1-based).
    :param float error_prob: Genotyping error probability.
    :param numpy.ndarray founder_geno: Founder SNP genotypes at the marker.
    :return: Log emission probability.
    :rtype: float
    """
    if obs_gen == core.MISSING:
        return 0.0
    f1 = founder_geno[allele1 - 1]
    f2 = founder_geno[allele2 - 1]
    if f1 == FOUNDER_AB:
        f1 = FOUNDER_MISSING
    if f2 == FOUNDER_AB:
        f2 = FOUNDER_MISSING

    if f1 == FOUNDER_MISSING and f2 == FOUNDER_MISSING:
        return 0.0

    if f1 == FOUNDER_MISSING or f2 == FOUNDER_MISSING:
        if obs_gen == core.OBS_AB:
            return 0.0
        return hemizygous_emission(obs_gen, max(f1, f2), error_prob)

    return diploid_emission(obs_gen, (f1 + f2) // 2, error_prob)


def diploid_emission(obs_gen, true_class, error_prob):
    """
    Emission for a true SNP genotype class (1 = AA, 2 = AB, 3 = BB).

    Mismatches between the three full calls share the error mass equally; the
    partial calls "not AA" and "not BB" are scored by whether they exclude the
    true class.
    """
    half_error = core.log(error_prob / 2.0)
    if true_class == core.OBS_AB:
        if obs_gen == core.OBS_AB:
            return _log_match(error_prob)
        if obs_gen in (core.OBS_AA, core.OBS_BB):
            return half_error
        if obs_gen in (core.OBS_NOT_AA, core.OBS_NOT_BB):
            return core.log1p(-error_prob / 2.0)
        return 0.0

    # homozygous: AA or BB
    if true_class == core.OBS_AA:
        same_not, other_not = core.OBS_NOT_BB, core.OBS_NOT_AA
    else:
        same_not, other_not = core.OBS_NOT_AA, core.OBS_NOT_BB
    if obs_gen == true_class:
        return _log_match(error_prob)
    if obs_gen in (core.OBS_AA, core.OBS_AB, core.OBS_BB):
        return half_error
    if obs_gen == same_not:
        return core.log1p(-error_prob / 2.0)
    if obs_gen == other_not:
        return core.log(error_prob)
    return 0.0


def inbred_emission(obs_gen, allele, error_prob, founder_geno):
    """Emission for a homozygous line carrying one founder's allele."""
    if obs_gen == core.MISSING:
        return 0.0
    founder = founder_geno[allele - 1]
    if founder not in (FOUNDER_AA, FOUNDER_BB):
        return 0.0
    if founder == obs_gen:
        return _log_match(error_prob)
    return core.log(error_prob)


def expected_log_likelihood(cross, rec_frac, gamma, is_x_chr, cross_info, is_female):
    """
    Sum over groups of the expected genotype-pair counts times the log
    transition probabilities at ``rec_frac``.
    """
    total = 0.0
    for group in range(gamma.shape[0]):
        female = True if is_female is None else bool(is_female[group])
        gens = cross.enumerate_possible_genotypes(is_x_chr, female, cross_info[group])
        counts = gamma[group][np.ix_(gens - 1, gens - 1)]
        used = counts > 0
        if not np.any(used):
            continue
        step = cross.transition_matrix(rec_frac, is_x_chr, female, cross_info[group])
        total += np.sum(counts[used] * step[used])
    return total


def maximize_rec_frac(cross, gamma, is_x_chr, cross_info, is_female, upper=0.5):
    """
    Numerical M-step: the recombination fraction in (0, upper] that maximises
    the expected complete-data log likelihood.
    """
    if gamma.sum() <= 0:
        return 0.0
    result = optimize.minimize_scalar(
        lambda r: -expected_log_likelihood(
            cross, r, gamma, is_x_chr, cross_info, is_female
        ),
        bounds=(1e-12, upper),
        method="bounded",
        options={"xatol": 1e-10},
    )
    return float(result.x)
