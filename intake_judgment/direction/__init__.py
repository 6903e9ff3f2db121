"""
Direction Package

This package decides whether a document is incoming or outgoing for the
owning tenant, and guards the invariant that the counterparty is never
the tenant itself.

Usage:
    from intake_judgment.direction import (
        DirectionResolver, TenantIdentity, check_counterparty_integrity,
    )

    tenant = TenantIdentity(vat_number='BE0123456789', legal_name='Acme NV')
    resolution = DirectionResolver().resolve(merged, tenant, DocumentType.INVOICE)
    check = check_counterparty_integrity(resolution, tenant)
"""

from .tenant import TenantIdentity
from .resolver import (
    DirectionConfig,
    DirectionResolution,
    DirectionResolver,
    DocumentDirection,
    ResolutionMethod,
    check_counterparty_integrity,
)

__all__ = [
    'TenantIdentity',
    'DirectionConfig',
    'DirectionResolution',
    'DirectionResolver',
    'DocumentDirection',
    'ResolutionMethod',
    'check_counterparty_integrity',
]
