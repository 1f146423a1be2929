"""Switch for compiling the HMM recurrences with numba."""

import os

import numba

ENABLE_NUMBA = os.environ.get("QTLHMM_ENABLE_NUMBA", "1").lower() not in (
    "0",
    "false",
    "no",
)


def numba_njit(func, **kwargs):
    if ENABLE_NUMBA:
        return numba.jit(func, nopython=True, **kwargs)
    return func
