"""External API definitions."""

import logging
import warnings

import numpy as np

from . import core
from . import crosses
from . import estmap
from . import genoprob
from . import matrices

logger = logging.getLogger(__name__)


def _get_supported_cross(crosstype):
    cross = crosses.get_cross(crosstype)
    if not cross.crosstype_supported():
        err_msg = f"Cross type not yet supported: {crosstype}."
        raise core.UnsupportedCrossError(err_msg)
    return cross


def _as_int_matrix(values, name):
    values = np.asarray(values)
    if values.ndim != 2:
        err_msg = f"{name} should be a 2d array."
        raise ValueError(err_msg)
    if values.size > 0 and not np.issubdtype(values.dtype, np.integer):
        err_msg = f"{name} should contain integers."
        raise ValueError(err_msg)
    return values.astype(np.int64)


def check_inputs(
    cross,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    rec_frac,
    marker_index,
    error_prob,
):
    """
    Check that the input data and parameters are valid for a cross design,
    and return them as arrays ready for the HMM algorithms.

    The genotype matrix and cross parameters are arrays of size (m, n) and
    (p, n), respectively, where:
        m = number of markers.
        n = number of individuals.
        p = number of cross parameters for the design (may be zero).

    :param QTLCross cross: The cross design.
    :param numpy.ndarray genotypes: Observed genotypes, 0 for missing.
    :param numpy.ndarray founder_geno: Founder genotypes, of size (k, m), or
        None for designs that do not use them.
    :param bool is_x_chr: Whether the markers are on the X chromosome.
    :param numpy.ndarray is_female: Sex of each individual, or None.
    :param numpy.ndarray cross_info: Cross parameters, or None.
    :param numpy.ndarray rec_frac: Recombination fractions between adjacent
        positions.
    :param numpy.ndarray marker_index: Marker at each position, -1 for a
        position without data.
    :param float error_prob: Genotyping error probability.
    :return: Checked genotypes, founder genotypes, sex vector, cross
        parameters, recombination fractions and marker index.
    :rtype: tuple
    """
    # Check the genotypes.
    genotypes = _as_int_matrix(genotypes, "genotypes")
    n_markers, n_ind = genotypes.shape
    if n_markers == 0:
        err_msg = "genotypes should have at least one marker."
        raise ValueError(err_msg)
    if np.any((genotypes < core.MISSING) | (genotypes > core.OBS_NOT_AA)):
        err_msg = "genotypes has invalid values; should be in [0, 5]."
        raise ValueError(err_msg)

    # Check the sex vector.
    if not cross.check_is_female_vector(is_female, is_x_chr):
        err_msg = f"is_female not valid for cross type {cross.crosstype}."
        raise ValueError(err_msg)
    if is_female is None:
        is_female = np.zeros(n_ind, dtype=bool)
    is_female = np.asarray(is_female, dtype=bool)
    if is_female.shape != (n_ind,):
        err_msg = "length(is_female) != number of individuals."
        raise ValueError(err_msg)

    # Check the cross parameters.
    if cross_info is None:
        cross_info = np.zeros((0, n_ind), dtype=np.int64)
    cross_info = _as_int_matrix(cross_info, "cross_info")
    if cross_info.shape[1] != n_ind:
        err_msg = "ncol(cross_info) != number of individuals."
        raise ValueError(err_msg)
    if not cross.check_cross_info(cross_info, is_x_chr):
        err_msg = f"cross_info not valid for cross type {cross.crosstype}."
        raise ValueError(err_msg)

    # Check the founder genotypes.
    if cross.need_founder_geno():
        if founder_geno is None:
            err_msg = f"founder_geno is needed for cross type {cross.crosstype}."
            raise ValueError(err_msg)
        founder_geno = _as_int_matrix(founder_geno, "founder_geno")
        if not cross.check_founder_geno_size(founder_geno, n_markers):
            err_msg = "founder_geno has incorrect dimensions."
            raise ValueError(err_msg)
        if not cross.check_founder_geno_values(founder_geno):
            err_msg = "founder_geno has invalid values."
            raise ValueError(err_msg)
    else:
        founder_geno = None

    # Check the positions.
    marker_index = np.asarray(marker_index)
    if marker_index.ndim != 1 or len(marker_index) == 0:
        err_msg = "marker_index should be a non-empty 1d array."
        raise ValueError(err_msg)
    marker_index = marker_index.astype(np.int64)
    if np.any((marker_index < -1) | (marker_index >= n_markers)):
        err_msg = "marker_index values out of range [-1, n_markers-1]."
        raise ValueError(err_msg)

    # Check the recombination fractions.
    rec_frac = np.asarray(rec_frac, dtype=np.float64)
    if rec_frac.shape != (len(marker_index) - 1,):
        err_msg = "length(rec_frac) != number of positions - 1."
        raise ValueError(err_msg)
    if np.any(np.isnan(rec_frac)) or np.any((rec_frac < 0.0) | (rec_frac > 0.5)):
        err_msg = "rec_frac must be >= 0 and <= 0.5."
        raise ValueError(err_msg)

    # Check the error probability.
    if not 0.0 <= error_prob <= 1.0:
        err_msg = "error_prob must be >= 0 and <= 1."
        raise ValueError(err_msg)

    return genotypes, founder_geno, is_female, cross_info, rec_frac, marker_index


def _handles_x_chr(cross, is_x_chr):
    if not is_x_chr or cross.check_handle_x_chr(True):
        return True
    warn_msg = f"X chromosome ignored for cross type {cross.crosstype}."
    warnings.warn(warn_msg)
    return False


def compute_genotype_probabilities(
    crosstype,
    genotypes,
    founder_geno,
    is_x_chr,
    is_female,
    cross_info,
    rec_frac,
    marker_index,
    error_prob,
    *,
    cancel=None,
):
    """
    Compute the conditional probability of each true genotype given the
    observed marker data, for every individual at every position.

    Positions are markers or pseudomarkers; ``marker_index`` gives the row
    of ``genotypes`` for each position, or -1 for a position without data.

    :param str crosstype: Name of the cross design.
    :param numpy.ndarray genotypes: Observed genotypes, of size
        (n_markers, n_ind), 0 for missing.
    :param numpy.ndarray founder_geno: Founder genotypes, of size
        (n_founders, n_markers), or None for designs that do not use them.
    :param bool is_x_chr: Whether the positions are on the X chromosome.
    :param numpy.ndarray is_female: Sex of each individual.
    :param numpy.ndarray cross_info: Cross parameters, of size
        (n_params, n_ind).
    :param numpy.ndarray rec_frac: Recombination fractions between adjacent
        positions, of size (n_pos - 1,).
    :param numpy.ndarray marker_index: Marker at each position, of size
        (n_pos,).
    :param float error_prob: Genotyping error probability.
    :param cancel: Optional object with an ``is_set()`` method; when set, the
        computation stops with ComputationCancelled.
    :return: Genotype probabilities, of size (n_gen, n_ind, n_pos).
    :rtype: numpy.ndarray
    """
    cross = _get_supported_cross(crosstype)
    (
        genotypes,
        founder_geno,
        is_female,
        cross_info,
        rec_frac,
        marker_index,
    ) = check_inputs(
        cross,
        genotypes,
        founder_geno,
        is_x_chr,
        is_female,
        cross_info,
        rec_frac,
        marker_index,
        error_prob,
    )
    n_ind = genotypes.shape[1]
    if not _handles_x_chr(cross, is_x_chr):
        return np.zeros((cross.n_genotypes(False), n_ind, 0))

    return genoprob.calc_genoprob(
        cross,
        genotypes,
        founder_geno,
        is_x_chr,
        is_female,
        cross_info,
        rec_frac,
        marker_index,
        error_prob,
        cancel=cancel,
    )


def reestimate_map(
    crosstype,
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
    *,
    cancel=None,
):
    """
    Re-estimate the recombination fractions between adjacent markers by
    maximum likelihood, with the EM algorithm.

    :param numpy.ndarray cross_group: Group of each individual, of size
        (n_ind,), or None to group individuals here.
    :param numpy.ndarray unique_cross_group: A representative individual of
        each group, of size (n_groups,), or None.
    :param numpy.ndarray rec_frac: Initial recombination fractions, of size
        (n_markers - 1,).
    :param int max_iterations: Maximum number of EM iterations.
    :param float tol: Tolerance for convergence.
    :param bool verbose: Log the progress of each iteration at INFO level.
    :return: The estimated recombination fractions and the log likelihood at
        that estimate.
    :rtype: tuple

    The other parameters are as for
    :func:`compute_genotype_probabilities`.
    """
    cross = _get_supported_cross(crosstype)
    n_markers = np.shape(genotypes)[0] if np.ndim(genotypes) == 2 else 0
    (
        genotypes,
        founder_geno,
        is_female,
        cross_info,
        rec_frac,
        marker_index,
    ) = check_inputs(
        cross,
        genotypes,
        founder_geno,
        is_x_chr,
        is_female,
        cross_info,
        rec_frac,
        np.arange(n_markers),
        error_prob,
    )

    if max_iterations < 0:
        err_msg = "max_iterations should be >= 0."
        raise ValueError(err_msg)
    if tol < 0:
        err_msg = "tol should be >= 0."
        raise ValueError(err_msg)

    if (cross_group is None) != (unique_cross_group is None):
        err_msg = "cross_group and unique_cross_group must be given together."
        raise ValueError(err_msg)
    if cross_group is not None:
        cross_group = np.asarray(cross_group, dtype=np.int64)
        unique_cross_group = np.asarray(unique_cross_group, dtype=np.int64)
        keys = matrices.grouping_keys(is_x_chr, is_female, cross_info)
        matrices.check_cross_groups(cross_group, unique_cross_group, keys)

    if not _handles_x_chr(cross, is_x_chr):
        return np.zeros(0), 0.0

    return estmap.est_map(
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
        int(max_iterations),
        float(tol),
        verbose,
        cancel=cancel,
    )


def genoprob_to_alleleprob(crosstype, probs, is_x_chr, *, cancel=None):
    """
    Convert genotype probabilities, of size (n_gen, n_ind, n_pos), into
    allele probabilities.

    Designs whose genotypes are already alleles return a copy of ``probs``.
    """
    cross = _get_supported_cross(crosstype)
    return genoprob.genoprob_to_alleleprob(
        cross, np.asarray(probs, dtype=np.float64), is_x_chr, cancel=cancel
    )


def count_crossovers(crosstype, genotypes, is_x_chr, is_female, cross_info):
    """
    Count the minimum number of crossovers in each individual.

    ``genotypes`` holds true genotype codes (for example the most probable
    genotype at each marker), of size (n_markers, n_ind), with 0 for
    missing. Missing values are skipped, so crossovers are counted between
    consecutive called genotypes.

    :return: Number of crossovers in each individual, of size (n_ind,).
    :rtype: numpy.ndarray
    """
    cross = _get_supported_cross(crosstype)
    genotypes = _as_int_matrix(genotypes, "genotypes")
    n_ind = genotypes.shape[1]
    if is_female is None:
        is_female = np.zeros(n_ind, dtype=bool)
    is_female = np.asarray(is_female, dtype=bool)
    if is_female.shape != (n_ind,):
        err_msg = "length(is_female) != number of individuals."
        raise ValueError(err_msg)
    if cross_info is None:
        cross_info = np.zeros((0, n_ind), dtype=np.int64)
    cross_info = _as_int_matrix(cross_info, "cross_info")
    if cross_info.shape[1] != n_ind:
        err_msg = "ncol(cross_info) != number of individuals."
        raise ValueError(err_msg)

    result = np.zeros(n_ind, dtype=np.int64)
    for ind in range(n_ind):
        female = bool(is_female[ind])
        info = cross_info[:, ind]
        possible = cross.enumerate_possible_genotypes(is_x_chr, female, info)
        called = genotypes[genotypes[:, ind] != core.MISSING, ind]
        if not np.all(np.isin(called, possible)):
            err_msg = f"genotypes has invalid values for individual {ind}."
            raise ValueError(err_msg)
        for left, right in zip(called[:-1], called[1:]):
            result[ind] += cross.count_recombination_events(
                int(left), int(right), is_x_chr, female, info
            )
    return result


def x_covariates(crosstype, is_female, cross_info):
    """
    Covariates to include under the null hypothesis when scanning the X
    chromosome, such as sex and cross direction.

    :return: An array of size (n_ind, n_covar) and the covariate names.
    :rtype: tuple
    """
    cross = _get_supported_cross(crosstype)
    is_female = np.asarray(is_female, dtype=bool)
    if cross_info is None:
        cross_info = np.zeros((0, len(is_female)), dtype=np.int64)
    cross_info = _as_int_matrix(cross_info, "cross_info")
    return cross.x_covariates(is_female, cross_info)
