"""
Estimation of recombination fractions between adjacent markers with the EM
algorithm.

Each iteration runs the forward-backward equations for every individual at
the current estimate, sums the posterior probabilities of adjacent genotype
pairs within groups of individuals sharing sex and cross parameters, and asks
the cross design for a new estimate for each interval.
"""

import logging
import warnings

import numpy as np

from qtlhmm import core
from qtlhmm import crosses
from qtlhmm import matrices
from qtlhmm.forward_backward import (
    accumulate_gamma,
    backward_equations,
    forward_equations,
    log_likelihood,
)

logger = logging.getLogger(__name__)


class _Group:
    """Matrices shared by the individuals of one group."""

    def __init__(
        self,
        cross,
        members,
        is_x_chr,
        is_female,
        cross_info,
        error_prob,
        founder_geno,
        n_markers,
    ):
        self.members = members
        self.is_female = is_female
        self.cross_info = cross_info
        self.gens = cross.enumerate_possible_genotypes(is_x_chr, is_female, cross_info)
        self.gen_index = (self.gens - 1).astype(np.int64)
        self.init = matrices.init_vector(cross, is_x_chr, is_female, cross_info)
        self.emit = matrices.emission_matrices(
            cross, error_prob, founder_geno, n_markers, is_x_chr, is_female, cross_info
        )


def _add_individual(obs, marker_index, group, step, gamma):
    alpha = forward_equations(obs, marker_index, group.init, group.emit, step)
    beta = backward_equations(obs, marker_index, group.init, group.emit, step)
    accumulate_gamma(
        alpha, beta, obs, marker_index, group.emit, step, group.gen_index, gamma
    )


def _log_iteration(verbose, iteration, prev_rec_frac, cur_rec_frac):
    level = logging.INFO if verbose else logging.DEBUG
    max_diff = np.max(np.abs(prev_rec_frac - cur_rec_frac), initial=0.0)
    logger.log(level, "%4d %.6g", iteration + 1, max_diff)


def _update(cross, gamma, prev_rec_frac, is_x_chr, cross_info, is_female, tol):
    n_gen = gamma.shape[-1]
    cur_rec_frac = np.empty_like(prev_rec_frac)
    for pos in range(len(prev_rec_frac)):
        cur_rec_frac[pos] = cross.reestimate_recombination_fraction(
            gamma[:, pos], is_x_chr, cross_info, n_gen, is_female
        )
    return core.clamp_rec_frac(cur_rec_frac, tol)


def _warn_not_converged(max_iterations):
    warn_msg = f"Didn't converge after {max_iterations} iterations."
    warnings.warn(warn_msg, core.ConvergenceWarning, stacklevel=2)


def est_map(
    cross,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    cross_group,
    unique_cross_group,
    rec_frac,
    error_prob,
    max_iterations,
    tol,
    verbose,
    cancel=None,
):
    """
    Estimate the recombination fractions between adjacent markers.

    The phase-known version of the design is used, and its
    ``est_map_method`` selects between the grouped algorithm and the
    founder-order algorithm. Inputs are assumed to have been checked already.

    :return: The estimated recombination fractions and the log likelihood
        at that estimate.
    :rtype: tuple
    """
    phase_known = crosses.get_phase_known_cross(cross)
    if phase_known.est_map_method is None:
        err_msg = f"est_map not yet implemented for cross type {cross.crosstype}."
        raise NotImplementedError(err_msg)

    if phase_known.est_map_method == "founder_order":
        return est_map_founder_order(
            phase_known,
            genotypes,
            founder_geno,
            is_x_chr,
            is_female,
            cross_info,
            rec_frac,
            error_prob,
            max_iterations,
            tol,
            verbose,
            cancel=cancel,
        )
    return est_map_grouped(
        phase_known,
        genotypes,
        founder_geno,
        is_x_chr,
        is_female,
        cross_info,
        cross_group,
        unique_cross_group,
        rec_frac,
        error_prob,
        max_iterations,
        tol,
        verbose,
        cancel=cancel,
    )


def est_map_grouped(
    cross,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    cross_group,
    unique_cross_group,
    rec_frac,
    error_prob,
    max_iterations,
    tol,
    verbose,
    cancel=None,
):
    """EM with matrices shared within groups of individuals."""
    n_markers, n_ind = genotypes.shape
    n_rf = n_markers - 1
    n_gen = cross.n_genotypes(is_x_chr)
    marker_index = np.arange(n_markers, dtype=np.int64)

    if not is_x_chr or cross_group is None:
        cross_group, unique_cross_group = matrices.group_individuals(
            is_x_chr, is_female, cross_info
        )
    groups = []
    for group, rep in enumerate(unique_cross_group):
        info = cross_info[:, rep]
        female = bool(is_female[rep])
        members = np.flatnonzero(cross_group == group)
        groups.append(
            _Group(
                cross,
                members,
                is_x_chr,
                female,
                info,
                error_prob,
                founder_geno,
                n_markers,
            )
        )
    group_info = cross_info[:, unique_cross_group].T
    group_female = np.asarray(is_female)[unique_cross_group]
    observed = [np.ascontiguousarray(genotypes[:, ind]) for ind in range(n_ind)]
    logger.debug("Estimating map for %d individuals in %d groups", n_ind, len(groups))

    cur_rec_frac = np.array(rec_frac, dtype=np.float64)
    converged = False
    for iteration in range(max_iterations):
        core.check_cancelled(cancel)
        prev_rec_frac = cur_rec_frac

        gamma = np.zeros((len(groups), n_rf, n_gen, n_gen))
        for g, group in enumerate(groups):
            step = matrices.step_matrices(
                cross, prev_rec_frac, is_x_chr, group.is_female, group.cross_info
            )
            for ind in group.members:
                core.check_cancelled(cancel)
                _add_individual(observed[ind], marker_index, group, step, gamma[g])

        cur_rec_frac = _update(
            cross, gamma, prev_rec_frac, is_x_chr, group_info, group_female, tol
        )
        _log_iteration(verbose, iteration, prev_rec_frac, cur_rec_frac)
        if core.has_converged(prev_rec_frac, cur_rec_frac, tol):
            converged = True
            break

    if not converged:
        _warn_not_converged(max_iterations)

    loglik = 0.0
    for group in groups:
        step = matrices.step_matrices(
            cross, cur_rec_frac, is_x_chr, group.is_female, group.cross_info
        )
        for ind in group.members:
            core.check_cancelled(cancel)
            alpha = forward_equations(
                observed[ind], marker_index, group.init, group.emit, step
            )
            loglik += log_likelihood(alpha)

    return cur_rec_frac, loglik


def est_map_founder_order(
    cross,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    rec_frac,
    error_prob,
    max_iterations,
    tol,
    verbose,
    cancel=None,
):
    """
    EM for designs whose transition matrices for different founder orders
    are the same up to a relabelling of the founders.

    One set of step matrices is computed for the plain order 1..k at each
    iteration and reindexed for each individual's founder order.
    """
    n_markers, n_ind = genotypes.shape
    n_rf = n_markers - 1
    n_gen = cross.n_genotypes(is_x_chr)
    marker_index = np.arange(n_markers, dtype=np.int64)

    plain_order = np.arange(1, cross.n_founders + 1)
    plain = _Group(
        cross,
        np.arange(n_ind),
        is_x_chr,
        True,
        plain_order,
        error_prob,
        founder_geno,
        n_markers,
    )
    positions = [cross.founder_positions(cross_info[:, ind]) for ind in range(n_ind)]
    observed = [np.ascontiguousarray(genotypes[:, ind]) for ind in range(n_ind)]
    logger.debug("Estimating map for %d individuals by founder order", n_ind)

    cur_rec_frac = np.array(rec_frac, dtype=np.float64)
    converged = False
    for iteration in range(max_iterations):
        core.check_cancelled(cancel)
        prev_rec_frac = cur_rec_frac

        plain_step = matrices.step_matrices(
            cross, prev_rec_frac, is_x_chr, True, plain_order
        )
        gamma = np.zeros((1, n_rf, n_gen, n_gen))
        for ind in range(n_ind):
            core.check_cancelled(cancel)
            step = matrices.reorder_step_matrices(plain_step, positions[ind])
            _add_individual(observed[ind], marker_index, plain, step, gamma[0])

        cur_rec_frac = _update(
            cross,
            gamma,
            prev_rec_frac,
            is_x_chr,
            plain_order[np.newaxis, :],
            np.ones(1, dtype=bool),
            tol,
        )
        _log_iteration(verbose, iteration, prev_rec_frac, cur_rec_frac)
        if core.has_converged(prev_rec_frac, cur_rec_frac, tol):
            converged = True
            break

    if not converged:
        _warn_not_converged(max_iterations)

    plain_step = matrices.step_matrices(
        cross, cur_rec_frac, is_x_chr, True, plain_order
    )
    loglik = 0.0
    for ind in range(n_ind):
        core.check_cancelled(cancel)
        step = matrices.reorder_step_matrices(plain_step, positions[ind])
        alpha = forward_equations(
            observed[ind], marker_index, plain.init, plain.emit, step
        )
        loglik += log_likelihood(alpha)

    return cur_rec_frac, loglik
