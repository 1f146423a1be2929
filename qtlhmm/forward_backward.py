"""Log-space forward-backward equations for one individual."""

import numpy as np

from qtlhmm import core
from qtlhmm import jit


@jit.numba_njit
def _emission(obs, marker_index, emit, pos, gen):
    marker = marker_index[pos]
    if marker < 0:
        return 0.0
    return emit[marker, obs[marker], gen]


@jit.numba_njit
def forward_equations(obs, marker_index, init, emit, step):
    """
    Forward (alpha) matrix in log space.

    The arguments are those of one individual: observed genotypes, of size
    (n_markers,); the marker at each position, or -1 for a position without
    data, of size (n_pos,); and the precomputed init vector, emission
    matrices and step matrices of the individual's group.

    :return: An array of size (n_poss, n_pos).
    :rtype: numpy.ndarray
    """
    n_poss = init.shape[0]
    n_pos = marker_index.shape[0]
    alpha = np.empty((n_poss, n_pos))

    for g in range(n_poss):
        alpha[g, 0] = init[g] + _emission(obs, marker_index, emit, 0, g)

    for pos in range(1, n_pos):
        for ir in range(n_poss):
            total = -np.inf
            for il in range(n_poss):
                total = core.addlog(total, alpha[il, pos - 1] + step[pos - 1, il, ir])
            alpha[ir, pos] = total + _emission(obs, marker_index, emit, pos, ir)

    return alpha


@jit.numba_njit
def backward_equations(obs, marker_index, init, emit, step):
    """Backward (beta) matrix in log space, of size (n_poss, n_pos)."""
    n_poss = init.shape[0]
    n_pos = marker_index.shape[0]
    beta = np.zeros((n_poss, n_pos))

    for pos in range(n_pos - 2, -1, -1):
        for il in range(n_poss):
            total = -np.inf
            for ir in range(n_poss):
                total = core.addlog(
                    total,
                    beta[ir, pos + 1]
                    + step[pos, il, ir]
                    + _emission(obs, marker_index, emit, pos + 1, ir),
                )
            beta[il, pos] = total

    return beta


@jit.numba_njit
def log_likelihood(alpha):
    """Log likelihood of an individual's data, from its forward matrix."""
    return core.logsumexp(alpha[:, alpha.shape[1] - 1])


@jit.numba_njit
def accumulate_gamma(alpha, beta, obs, marker_index, emit, step, gen_index, gamma):
    """
    Add an individual's posterior probabilities of adjacent genotype pairs to
    ``gamma``, of size (n_intervals, n_gen, n_gen) and indexed by genotype
    code minus one; ``gen_index`` maps possible genotypes to those indices.
    """
    n_poss = alpha.shape[0]
    n_pos = alpha.shape[1]
    pair = np.empty((n_poss, n_poss))

    for pos in range(n_pos - 1):
        total = -np.inf
        for il in range(n_poss):
            for ir in range(n_poss):
                pair[il, ir] = (
                    alpha[il, pos]
                    + beta[ir, pos + 1]
                    + step[pos, il, ir]
                    + _emission(obs, marker_index, emit, pos + 1, ir)
                )
                total = core.addlog(total, pair[il, ir])
        for il in range(n_poss):
            for ir in range(n_poss):
                gamma[pos, gen_index[il], gen_index[ir]] += np.exp(pair[il, ir] - total)
