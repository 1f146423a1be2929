"""Cross designs, created by name."""

import re

from qtlhmm import core
from qtlhmm.crosses.ail import AIL
from qtlhmm.crosses.ail3 import AIL3
from qtlhmm.crosses.base import QTLCross
from qtlhmm.crosses.bc import BC
from qtlhmm.crosses.dh import DH, Haploid
from qtlhmm.crosses.dh6 import DH6
from qtlhmm.crosses.do import DO, DOPK
from qtlhmm.crosses.f2 import F2, F2PK
from qtlhmm.crosses.genail import GENAIL
from qtlhmm.crosses.genril import GENRIL
from qtlhmm.crosses.riself import RISELF, RISELFK
from qtlhmm.crosses.risib import RISIB

CROSSES = {
    "bc": BC,
    "f2": F2,
    "f2pk": F2PK,
    "riself": RISELF,
    "riself4": lambda: RISELFK(4),
    "riself8": lambda: RISELFK(8),
    "riself16": lambda: RISELFK(16),
    "risib": RISIB,
    "dh": DH,
    "haploid": Haploid,
    "ail": AIL,
    "ail3": AIL3,
    "dh6": DH6,
    "do": DO,
    "dopk": DOPK,
}

# Designs parameterised by their number of founders, as in "genril8".
FOUNDER_CROSSES = {
    "genril": GENRIL,
    "genail": GENAIL,
}

_FOUNDER_CROSS_NAME = re.compile(r"^(genril|genail)(\d+)$")


def get_cross(crosstype):
    """
    Create the cross design named ``crosstype``.

    :param str crosstype: Design name, e.g. "bc", "f2", "riself8", "genail4".
    :return: The cross design.
    :rtype: QTLCross
    """
    factory = CROSSES.get(crosstype)
    if factory is not None:
        return factory()
    match = _FOUNDER_CROSS_NAME.match(crosstype)
    if match is not None and int(match.group(2)) >= 2:
        return FOUNDER_CROSSES[match.group(1)](int(match.group(2)))
    err_msg = f"Cross type not yet supported: {crosstype}."
    raise core.UnsupportedCrossError(err_msg)


def get_phase_known_cross(cross):
    """The design used to estimate the map for ``cross``."""
    if cross.phase_known_crosstype == cross.crosstype:
        return cross
    return get_cross(cross.phase_known_crosstype)


__all__ = [
    "AIL",
    "AIL3",
    "BC",
    "CROSSES",
    "DH",
    "DH6",
    "DO",
    "DOPK",
    "F2",
    "F2PK",
    "GENAIL",
    "GENRIL",
    "Haploid",
    "QTLCross",
    "RISELF",
    "RISELFK",
    "RISIB",
    "get_cross",
    "get_phase_known_cross",
]
