import logging
import os

import numpy as np

from qtlhmm import jit

logger = logging.getLogger(__name__)


MISSING = 0

# Observed-genotype codes shared by designs with three genotype classes.
OBS_AA = 1
OBS_AB = 2
OBS_BB = 3
OBS_NOT_BB = 4
OBS_NOT_AA = 5

# Bounds on re-estimated recombination fractions, relative to the tolerance.
RF_LOWER_FACTOR = 1e-3
RF_UPPER = 0.999


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() not in ("0", "false", "no", "off")


_check_genotypes = _env_flag("QTLHMM_CHECK_GENOTYPES", True)


def set_genotype_checks(enabled):
    """
    Enable or disable range checks on true genotype codes inside the
    probability laws of the cross designs.

    Turning the checks off trusts the caller to only pass genotypes from
    ``enumerate_possible_genotypes``.

    :param bool enabled: Whether to check genotype codes.
    :return: The previous setting.
    :rtype: bool
    """
    global _check_genotypes
    previous = _check_genotypes
    _check_genotypes = bool(enabled)
    return previous


def genotype_checks_enabled():
    return _check_genotypes


class GenotypeValueError(ValueError):
    """A true genotype code impossible for the design reached a probability law."""


class UnsupportedCrossError(ValueError):
    """The requested cross design is not known."""


class ComputationCancelled(Exception):
    """A long-running computation was cancelled by the caller."""


class ConvergenceWarning(UserWarning):
    """The EM algorithm stopped at the iteration limit before converging."""


def check_cancelled(cancel):
    """
    Raise ComputationCancelled if the caller's cancellation token is set.

    The token is any object with an ``is_set()`` method, typically a
    ``threading.Event``; ``None`` means the computation cannot be cancelled.
    """
    if cancel is not None and cancel.is_set():
        err_msg = "Computation cancelled."
        raise ComputationCancelled(err_msg)


@jit.numba_njit
def addlog(a, b):
    """Return log(exp(a) + exp(b)) without leaving log space."""
    if a == -np.inf:
        return b
    if b == -np.inf:
        return a
    if a > b:
        return a + np.log1p(np.exp(b - a))
    return b + np.log1p(np.exp(a - b))


@jit.numba_njit
def logsumexp(values):
    result = -np.inf
    for i in range(values.shape[0]):
        result = addlog(result, values[i])
    return result


def log(x):
    """Natural log that maps 0 to -inf without a floating-point warning."""
    with np.errstate(divide="ignore"):
        return float(np.log(x))


def log1p(x):
    with np.errstate(divide="ignore"):
        return float(np.log1p(x))


def clamp_rec_frac(rec_frac, tol):
    """
    Clamp re-estimated recombination fractions into [tol/1000, 0.999].

    :param numpy.ndarray rec_frac: Recombination fractions; modified in place.
    :param float tol: Convergence tolerance of the EM algorithm.
    :return: The clamped array.
    :rtype: numpy.ndarray
    """
    np.clip(rec_frac, tol * RF_LOWER_FACTOR, RF_UPPER, out=rec_frac)
    return rec_frac


def has_converged(prev_rec_frac, cur_rec_frac, tol):
    """Relative convergence test applied to every interval."""
    diff = np.abs(prev_rec_frac - cur_rec_frac)
    return bool(np.all(diff <= tol * (cur_rec_frac + tol * 100.0)))
