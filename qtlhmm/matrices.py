"""
Precomputed HMM matrices for groups of individuals that share sex and cross
parameters, and the grouping itself.

All matrices are indexed by position in the list of possible genotypes for
the group, not by genotype code.
"""

import numpy as np

from qtlhmm import core

# Observed genotype codes run from 0 (missing) to 5 ("not AA").
N_OBSERVED = core.OBS_NOT_AA + 1


def init_vector(cross, is_x_chr, is_female, cross_info):
    """Log initial probabilities, of size (n_poss,)."""
    with np.errstate(divide="ignore"):
        return cross.initial_vector(is_x_chr, is_female, cross_info)


def emission_matrices(
    cross, error_prob, founder_geno, n_markers, is_x_chr, is_female, cross_info
):
    """
    Log emission probabilities, of size (n_markers, N_OBSERVED, n_poss).

    Designs that do not use founder genotypes get one matrix repeated for
    every marker.
    """
    with np.errstate(divide="ignore"):
        if not cross.need_founder_geno() or founder_geno is None:
            emit = cross.emission_matrix(
                error_prob, None, N_OBSERVED, is_x_chr, is_female, cross_info
            )
            return np.repeat(emit[np.newaxis, :, :], n_markers, axis=0)
        result = [
            cross.emission_matrix(
                error_prob,
                founder_geno[:, marker],
                N_OBSERVED,
                is_x_chr,
                is_female,
                cross_info,
            )
            for marker in range(n_markers)
        ]
        return np.array(result)


def step_matrices(cross, rec_frac, is_x_chr, is_female, cross_info):
    """Log transition probabilities, of size (n_intervals, n_poss, n_poss)."""
    n_poss = len(cross.enumerate_possible_genotypes(is_x_chr, is_female, cross_info))
    result = np.empty((len(rec_frac), n_poss, n_poss))
    with np.errstate(divide="ignore"):
        for i, rf in enumerate(rec_frac):
            result[i] = cross.transition_matrix(rf, is_x_chr, is_female, cross_info)
    return result


def grouping_keys(is_x_chr, is_female, cross_info):
    """
    One row per individual of the values that must be equal for two
    individuals to share matrices: sex and cross parameters on the X
    chromosome, cross parameters alone on autosomes.
    """
    keys = np.asarray(cross_info, dtype=np.int64).T
    if is_x_chr:
        keys = np.column_stack([np.asarray(is_female, dtype=np.int64), keys])
    return keys


def group_individuals(is_x_chr, is_female, cross_info):
    """
    Group individuals with equal grouping keys.

    :return: The group of each individual, of size (n_ind,), and a
        representative individual for each group, of size (n_groups,).
    :rtype: tuple
    """
    keys = grouping_keys(is_x_chr, is_female, cross_info)
    n_ind = keys.shape[0]
    if n_ind == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    if keys.shape[1] == 0:
        return np.zeros(n_ind, dtype=np.int64), np.zeros(1, dtype=np.int64)
    _, unique_cross_group, cross_group = np.unique(
        keys, axis=0, return_index=True, return_inverse=True
    )
    return cross_group.reshape(n_ind).astype(np.int64), unique_cross_group.astype(
        np.int64
    )


def check_cross_groups(cross_group, unique_cross_group, keys):
    """
    Check a caller-supplied grouping: every group has a representative inside
    it, and every member shares the representative's grouping key.
    """
    n_ind = keys.shape[0]
    n_groups = len(unique_cross_group)
    if len(cross_group) != n_ind:
        err_msg = "length(cross_group) != number of individuals"
        raise ValueError(err_msg)
    if np.any((unique_cross_group < 0) | (unique_cross_group >= n_ind)):
        err_msg = "unique_cross_group values out of range [0, n_ind-1]"
        raise ValueError(err_msg)
    if np.any((cross_group < 0) | (cross_group >= n_groups)):
        err_msg = "cross_group values out of range [0, n_groups-1]"
        raise ValueError(err_msg)
    if np.any(cross_group[unique_cross_group] != np.arange(n_groups)):
        err_msg = "unique_cross_group has individuals outside their own group"
        raise ValueError(err_msg)
    representative = unique_cross_group[cross_group]
    if not np.all(keys == keys[representative]):
        err_msg = (
            "cross_group puts individuals with different sex or cross_info together"
        )
        raise ValueError(err_msg)


def reorder_step_matrices(step, positions):
    """
    Reindex step matrices computed for the plain founder order so they apply
    to an individual whose founders sit at ``positions`` in the funnel.

    A new array is returned; ``step`` is left unchanged.
    """
    return step[:, positions[:, np.newaxis], positions[np.newaxis, :]]
