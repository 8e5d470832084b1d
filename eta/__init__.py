"""
ETA engine package.

Public API:
- Policy: EtaPolicy, default_eta_policy
- Estimation: EtaEstimator, EtaEstimate, EtaRecalculation
- Live read model: LiveEta, compute_live_eta
- Errors: EtaError and its subclasses

The event processor lives in eta.processor; it depends on the notifications
package, which itself reads eta.live, so it is imported from there directly.
"""
from .errors import (
    EtaError,
    EtaNotFoundError,
    EtaValidationError,
    OrderClosedError,
    OrderNotFoundError,
    RestaurantNotFoundError,
    RiderNotFoundError,
)
from .policy import EtaPolicy, default_eta_policy
from .classification import classify_acceptance, classify_assignment
from .estimator import EtaEstimate, EtaEstimator, EtaRecalculation
from .live import LiveEta, compute_live_eta

__all__ = [
    "EtaError",
    "EtaNotFoundError",
    "EtaValidationError",
    "OrderClosedError",
    "OrderNotFoundError",
    "RestaurantNotFoundError",
    "RiderNotFoundError",
    "EtaPolicy",
    "default_eta_policy",
    "classify_acceptance",
    "classify_assignment",
    "EtaEstimate",
    "EtaEstimator",
    "EtaRecalculation",
    "LiveEta",
    "compute_live_eta",
]
