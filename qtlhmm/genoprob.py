"""Genotype probabilities from the forward-backward equations."""

import logging

import numpy as np

from qtlhmm import core
from qtlhmm import jit
from qtlhmm import matrices
from qtlhmm.forward_backward import backward_equations, forward_equations

logger = logging.getLogger(__name__)


@jit.numba_njit
def posterior_probabilities(alpha, beta):
    """
    Combine forward and backward matrices into genotype probabilities that
    sum to 1 over the possible genotypes at each position.
    """
    n_poss, n_pos = alpha.shape
    probs = np.empty((n_poss, n_pos))
    for pos in range(n_pos):
        total = -np.inf
        for g in range(n_poss):
            probs[g, pos] = alpha[g, pos] + beta[g, pos]
            total = core.addlog(total, probs[g, pos])
        for g in range(n_poss):
            probs[g, pos] = np.exp(probs[g, pos] - total)
    return probs


def calc_genoprob(
    cross,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    rec_frac,
    marker_index,
    error_prob,
    cancel=None,
):
    """
    Genotype probabilities for every individual at every position.

    Inputs are assumed to have been checked already.

    :return: An array of size (n_gen, n_ind, n_pos), zero for genotypes that
        are impossible for an individual.
    :rtype: numpy.ndarray
    """
    n_markers, n_ind = genotypes.shape
    n_pos = len(marker_index)
    n_gen = cross.n_genotypes(is_x_chr)
    result = np.zeros((n_gen, n_ind, n_pos))

    cross_group, unique_cross_group = matrices.group_individuals(
        is_x_chr, is_female, cross_info
    )
    logger.debug(
        "Computing genotype probabilities for %d individuals in %d groups",
        n_ind,
        len(unique_cross_group),
    )

    for group, rep in enumerate(unique_cross_group):
        female = bool(is_female[rep])
        info = cross_info[:, rep]
        gens = cross.enumerate_possible_genotypes(is_x_chr, female, info)
        init = matrices.init_vector(cross, is_x_chr, female, info)
        emit = matrices.emission_matrices(
            cross, error_prob, founder_geno, n_markers, is_x_chr, female, info
        )
        step = matrices.step_matrices(cross, rec_frac, is_x_chr, female, info)

        for ind in np.flatnonzero(cross_group == group):
            core.check_cancelled(cancel)
            obs = np.ascontiguousarray(genotypes[:, ind])
            alpha = forward_equations(obs, marker_index, init, emit, step)
            beta = backward_equations(obs, marker_index, init, emit, step)
            result[gens - 1, ind, :] = posterior_probabilities(alpha, beta)

    return result


def genoprob_to_alleleprob(cross, probs, is_x_chr, cancel=None):
    """
    Convert genotype probabilities of size (n_gen, n_ind, n_pos) into allele
    probabilities of size (n_alleles, n_ind, n_pos).
    """
    if probs.ndim != 3:
        err_msg = "probs should be a 3d array of probabilities"
        raise ValueError(err_msg)
    transform = cross.geno2allele_matrix(is_x_chr)
    if transform is None:
        return probs.copy()
    if transform.shape[0] != probs.shape[0]:
        err_msg = "no. genotypes in probs doesn't match no. rows in transform matrix"
        raise ValueError(err_msg)
    result = np.empty((transform.shape[1],) + probs.shape[1:])
    for pos in range(probs.shape[2]):
        core.check_cancelled(cancel)
        result[:, :, pos] = transform.T @ probs[:, :, pos]
    return result
