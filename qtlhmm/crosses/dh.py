"""Doubled haploids and haploids."""

import logging

from qtlhmm.crosses import base

logger = logging.getLogger(__name__)


class DH(base.QTLCross):
    crosstype = "dh"

    def check_handle_x_chr(self, any_x_chr):
        if any_x_chr:
            logger.warning("X chr ignored for doubled haploids.")
            return False
        return True


class Haploid(base.QTLCross):
    crosstype = "haploid"

    def genotype_names(self, alleles, is_x_chr):
        if len(alleles) < 2:
            err_msg = "alleles must have length 2."
            raise ValueError(err_msg)
        return [alleles[0], alleles[1]]
