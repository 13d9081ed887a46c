"""
Continuous factors built on product kernel density estimation.

Exports:
- ProductKDE: joint density as a product of univariate Gaussian KDEs
- ConditionalProductKDE: f(x | evidence) from two product KDEs
- BandwidthEstimator: bandwidth strategy interface
- NormalReferenceRule, ScottsBandwidth, CustomBandwidth: built-in strategies
"""

from .bandwidth import (
    BandwidthEstimator,
    NormalReferenceRule,
    ScottsBandwidth,
    CustomBandwidth,
    scott_factor,
    normal_reference_factor,
)
from .product_kde import ProductKDE, check_variable_set
from .conditional_kde import ConditionalProductKDE

__all__ = [
    "BandwidthEstimator",
    "NormalReferenceRule",
    "ScottsBandwidth",
    "CustomBandwidth",
    "scott_factor",
    "normal_reference_factor",
    "ProductKDE",
    "ConditionalProductKDE",
    "check_variable_set",
]
