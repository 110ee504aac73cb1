"""
checkin_engines.charge_basis -- Resolve the metering basis of a charge rate.

Responsibility:
    Derive the single billing basis (hobbs, tacho, airswitch or none) from
    the three independent charge flags of a ``ChargeRateConfig``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import checkin_kernel/domain types.

Invariants enforced:
    - Exactly one flag set: that basis.
    - Several flags set (a configuration defect): fixed priority
      hobbs > tacho > airswitch. Never raises.
    - No flag or no configuration: ``BillingBasis.NONE``.

Failure modes:
    - None. Downstream engines treat ``none`` and ``airswitch`` as blocking.
"""

from __future__ import annotations

from checkin_kernel.domain.checkin import BillingBasis, ChargeRateConfig
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.charge_basis")

_SUPPORTED = frozenset({BillingBasis.HOBBS, BillingBasis.TACHO})


def resolve_charge_basis(config: ChargeRateConfig | None) -> BillingBasis:
    """Return the basis that governs billing for ``config``."""
    if config is None:
        return BillingBasis.NONE

    flagged = [
        basis
        for basis, flag in (
            (BillingBasis.HOBBS, config.charge_hobbs),
            (BillingBasis.TACHO, config.charge_tacho),
            (BillingBasis.AIRSWITCH, config.charge_airswitch),
        )
        if flag
    ]
    if not flagged:
        return BillingBasis.NONE

    if len(flagged) > 1:
        logger.warning("charge_rate_multiple_bases", extra={
            "charge_rate_id": config.id,
            "flags": [b.value for b in flagged],
            "resolved": flagged[0].value,
        })
    return flagged[0]


def is_supported_basis(basis: BillingBasis) -> bool:
    """True for the bases the engine can bill against."""
    return basis in _SUPPORTED
