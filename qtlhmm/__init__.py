"""HMM genotype probabilities and genetic map estimation for experimental crosses."""

from .api import (
    check_inputs,
    compute_genotype_probabilities,
    count_crossovers,
    genoprob_to_alleleprob,
    reestimate_map,
    x_covariates,
)
from .core import (
    ComputationCancelled,
    ConvergenceWarning,
    GenotypeValueError,
    UnsupportedCrossError,
    set_genotype_checks,
)
