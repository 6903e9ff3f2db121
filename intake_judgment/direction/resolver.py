"""
Direction & Counterparty Resolver

Decides whether the tenant issued a document (OUTBOUND) or received it
(INBOUND), and which extracted VAT number belongs to the counterparty.

Resolution Order:
1. VAT match: exactly one party carries the tenant VAT → confidence 1.0
2. Name match: exactly one party name matches a tenant name → 0.80
   (equal, contained, or Jaro-Winkler similarity ≥ 0.90)
3. Extractor hint: 'direction_hint' field → its own confidence, default 0.60
4. Otherwise UNKNOWN

Receipts and expenses name only a merchant: the document is OUTBOUND when
the merchant is the tenant, INBOUND otherwise.

Integrity:
The counterparty must never be the tenant itself. When the resolved
counterparty VAT equals the tenant VAT, check_counterparty_integrity()
yields a CRITICAL COUNTERPARTY_INTEGRITY check that is merged into the
audit report.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Dict, Any, Tuple

from loguru import logger
from rapidfuzz.distance import JaroWinkler

from ..doctypes import DocumentType
from ..ensemble.candidate import ExtractionCandidate
from ..parser.normalizers import IdentifierNormalizer, NameNormalizer
from ..validation.audit_report import AuditCheck, CheckType
from .tenant import TenantIdentity


class DocumentDirection(Enum):
    """Direction of a document relative to the tenant."""

    INBOUND = auto()    # Tenant is the recipient (bills, purchase receipts)
    OUTBOUND = auto()   # Tenant is the issuer (sales invoices)
    UNKNOWN = auto()    # Could not be decided


class ResolutionMethod(Enum):
    """Signal that decided the direction."""

    VAT_MATCH = auto()
    NAME_MATCH = auto()
    AI_HINT = auto()
    UNKNOWN = auto()


# Field names per party role, in lookup order
SELLER_NAME_FIELDS = ('seller_name', 'supplier_name', 'vendor_name')
SELLER_VAT_FIELDS = ('seller_vat', 'supplier_vat', 'vendor_vat')
BUYER_NAME_FIELDS = ('buyer_name', 'customer_name')
BUYER_VAT_FIELDS = ('buyer_vat', 'customer_vat')
MERCHANT_NAME_FIELDS = ('merchant_name', 'seller_name', 'vendor_name')
MERCHANT_VAT_FIELDS = ('merchant_vat', 'seller_vat', 'vendor_vat')

_HINT_VALUES = {
    'inbound': DocumentDirection.INBOUND,
    'incoming': DocumentDirection.INBOUND,
    'outbound': DocumentDirection.OUTBOUND,
    'outgoing': DocumentDirection.OUTBOUND,
}


@dataclass(frozen=True)
class DirectionResolution:
    """
    How a document's direction was resolved.

    Attributes:
        direction: INBOUND, OUTBOUND or UNKNOWN
        source: Signal that decided it
        confidence: Confidence in [0, 1]
        counterparty_vat: Normalized VAT of the non-tenant party
        tenant_vat: Normalized tenant VAT used for the decision
        matched_field: Extracted field that matched the tenant
        reasoning: Human-readable explanation
    """

    direction: DocumentDirection
    source: ResolutionMethod
    confidence: float
    counterparty_vat: Optional[str] = None
    tenant_vat: Optional[str] = None
    matched_field: Optional[str] = None
    reasoning: str = ''

    @property
    def is_resolved(self) -> bool:
        return self.direction is not DocumentDirection.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.name,
            'source': self.source.name,
            'confidence': self.confidence,
            'counterparty_vat': self.counterparty_vat,
            'tenant_vat': self.tenant_vat,
            'matched_field': self.matched_field,
            'reasoning': self.reasoning,
        }


@dataclass
class DirectionConfig:
    """Configuration for direction resolution."""

    name_match_confidence: float = 0.80
    default_hint_confidence: float = 0.60
    name_similarity_threshold: float = 0.90

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name_match_confidence': self.name_match_confidence,
            'default_hint_confidence': self.default_hint_confidence,
            'name_similarity_threshold': self.name_similarity_threshold,
        }


@dataclass(frozen=True)
class _Party:
    name: str              # normalized, '' when absent
    vat: Optional[str]     # normalized
    name_field: Optional[str]
    vat_field: Optional[str]


def _party(data: ExtractionCandidate, name_fields: Tuple[str, ...], vat_fields: Tuple[str, ...]) -> _Party:
    name_field = next((f for f in name_fields if data.get(f) is not None), None)
    vat_field = next((f for f in vat_fields if data.get(f) is not None), None)
    return _Party(
        name=NameNormalizer.normalize(data.get(name_field)) if name_field else '',
        vat=IdentifierNormalizer.vat(data.get(vat_field)) if vat_field else None,
        name_field=name_field,
        vat_field=vat_field,
    )


class DirectionResolver:
    """
    Resolves document direction against a tenant identity.

    Usage:
        resolver = DirectionResolver()
        resolution = resolver.resolve(merged, tenant, DocumentType.INVOICE)

        check = check_counterparty_integrity(resolution, tenant)
        report = report.merged_with([check])
    """

    def __init__(self, config: Optional[DirectionConfig] = None):
        self.config = config or DirectionConfig()

    def names_match(self, candidate: str, tenant_name: str) -> bool:
        """Compare two normalized names."""
        if not candidate or not tenant_name:
            return False
        if candidate == tenant_name:
            return True
        if candidate in tenant_name or tenant_name in candidate:
            return True
        similarity = JaroWinkler.normalized_similarity(candidate, tenant_name)
        return similarity >= self.config.name_similarity_threshold

    def matches_tenant_name(self, name: str, tenant: TenantIdentity) -> bool:
        return any(self.names_match(name, t) for t in tenant.normalized_names)

    def resolve(
        self,
        data: Optional[ExtractionCandidate],
        tenant: Optional[TenantIdentity],
        document_type: DocumentType = DocumentType.UNKNOWN,
    ) -> DirectionResolution:
        """
        Resolve the direction of one document.

        Args:
            data: Merged extraction, None when there is none
            tenant: Owning tenant, None when unknown
            document_type: Receipts and expenses use merchant rules

        Returns:
            DirectionResolution
        """
        tenant = tenant or TenantIdentity()
        tenant_vat = tenant.normalized_vat

        if data is None:
            return DirectionResolution(
                DocumentDirection.UNKNOWN, ResolutionMethod.UNKNOWN, 0.0,
                tenant_vat=tenant_vat, reasoning="No extraction to resolve",
            )

        if document_type.has_single_party:
            resolution = self._resolve_merchant(data, tenant, tenant_vat)
        else:
            resolution = self._resolve_parties(data, tenant, tenant_vat)

        logger.info(
            f"Direction: {resolution.direction.name} via {resolution.source.name} "
            f"(confidence {resolution.confidence:.2f})"
        )
        return resolution

    def _resolve_parties(
        self,
        data: ExtractionCandidate,
        tenant: TenantIdentity,
        tenant_vat: Optional[str],
    ) -> DirectionResolution:
        seller = _party(data, SELLER_NAME_FIELDS, SELLER_VAT_FIELDS)
        buyer = _party(data, BUYER_NAME_FIELDS, BUYER_VAT_FIELDS)

        seller_vat_match = tenant_vat is not None and seller.vat == tenant_vat
        buyer_vat_match = tenant_vat is not None and buyer.vat == tenant_vat

        if seller_vat_match and buyer_vat_match:
            # Both parties cannot be the tenant; counterparty collapses onto it
            return DirectionResolution(
                DocumentDirection.UNKNOWN, ResolutionMethod.VAT_MATCH, 0.0,
                counterparty_vat=tenant_vat, tenant_vat=tenant_vat,
                reasoning="Seller and buyer both carry the tenant VAT number",
            )

        if seller_vat_match:
            return DirectionResolution(
                DocumentDirection.OUTBOUND, ResolutionMethod.VAT_MATCH, 1.0,
                counterparty_vat=buyer.vat, tenant_vat=tenant_vat,
                matched_field=seller.vat_field,
                reasoning="Seller VAT matches tenant VAT",
            )

        if buyer_vat_match:
            return DirectionResolution(
                DocumentDirection.INBOUND, ResolutionMethod.VAT_MATCH, 1.0,
                counterparty_vat=seller.vat, tenant_vat=tenant_vat,
                matched_field=buyer.vat_field,
                reasoning="Buyer VAT matches tenant VAT",
            )

        seller_name_match = self.matches_tenant_name(seller.name, tenant)
        buyer_name_match = self.matches_tenant_name(buyer.name, tenant)

        if seller_name_match != buyer_name_match:
            if seller_name_match:
                return DirectionResolution(
                    DocumentDirection.OUTBOUND, ResolutionMethod.NAME_MATCH,
                    self.config.name_match_confidence,
                    counterparty_vat=buyer.vat, tenant_vat=tenant_vat,
                    matched_field=seller.name_field,
                    reasoning="Seller name matches tenant name",
                )
            return DirectionResolution(
                DocumentDirection.INBOUND, ResolutionMethod.NAME_MATCH,
                self.config.name_match_confidence,
                counterparty_vat=seller.vat, tenant_vat=tenant_vat,
                matched_field=buyer.name_field,
                reasoning="Buyer name matches tenant name",
            )

        counterparties = {
            DocumentDirection.OUTBOUND: buyer.vat,
            DocumentDirection.INBOUND: seller.vat,
        }
        return self._resolve_hint(data, tenant_vat, counterparties)

    def _resolve_merchant(
        self,
        data: ExtractionCandidate,
        tenant: TenantIdentity,
        tenant_vat: Optional[str],
    ) -> DirectionResolution:
        merchant = _party(data, MERCHANT_NAME_FIELDS, MERCHANT_VAT_FIELDS)

        if tenant_vat is not None and merchant.vat is not None:
            if merchant.vat == tenant_vat:
                return DirectionResolution(
                    DocumentDirection.OUTBOUND, ResolutionMethod.VAT_MATCH, 1.0,
                    tenant_vat=tenant_vat, matched_field=merchant.vat_field,
                    reasoning="Merchant VAT matches tenant VAT",
                )
            return DirectionResolution(
                DocumentDirection.INBOUND, ResolutionMethod.VAT_MATCH, 1.0,
                counterparty_vat=merchant.vat, tenant_vat=tenant_vat,
                reasoning="Merchant VAT differs from tenant VAT",
            )

        if merchant.name:
            if self.matches_tenant_name(merchant.name, tenant):
                return DirectionResolution(
                    DocumentDirection.OUTBOUND, ResolutionMethod.NAME_MATCH,
                    self.config.name_match_confidence,
                    tenant_vat=tenant_vat, matched_field=merchant.name_field,
                    reasoning="Merchant name matches tenant name",
                )
            return DirectionResolution(
                DocumentDirection.INBOUND, ResolutionMethod.NAME_MATCH,
                self.config.name_match_confidence,
                counterparty_vat=merchant.vat, tenant_vat=tenant_vat,
                reasoning="Merchant is not the tenant",
            )

        counterparties = {
            DocumentDirection.OUTBOUND: None,
            DocumentDirection.INBOUND: merchant.vat,
        }
        return self._resolve_hint(data, tenant_vat, counterparties)

    def _resolve_hint(
        self,
        data: ExtractionCandidate,
        tenant_vat: Optional[str],
        counterparties: Dict[DocumentDirection, Optional[str]],
    ) -> DirectionResolution:
        hint = data.get('direction_hint')
        direction = _HINT_VALUES.get(str(hint).strip().lower()) if hint is not None else None

        if direction is None:
            return DirectionResolution(
                DocumentDirection.UNKNOWN, ResolutionMethod.UNKNOWN, 0.0,
                tenant_vat=tenant_vat,
                reasoning="No VAT or name match and no direction hint",
            )

        try:
            confidence = float(data.get('direction_hint_confidence'))
        except (TypeError, ValueError):
            confidence = self.config.default_hint_confidence
        confidence = min(1.0, max(0.0, confidence))

        return DirectionResolution(
            direction, ResolutionMethod.AI_HINT, confidence,
            counterparty_vat=counterparties[direction], tenant_vat=tenant_vat,
            matched_field='direction_hint',
            reasoning=f"Extractor hint: {direction.name.lower()}",
        )


def check_counterparty_integrity(
    resolution: DirectionResolution, tenant: Optional[TenantIdentity]
) -> AuditCheck:
    """
    The counterparty must not be the tenant.

    Returns:
        CRITICAL COUNTERPARTY_INTEGRITY failure when the counterparty VAT
        equals the tenant VAT (both non-blank), a passing check otherwise
    """
    tenant_vat = tenant.normalized_vat if tenant is not None else None
    counterparty_vat = IdentifierNormalizer.vat(resolution.counterparty_vat)

    if tenant_vat and counterparty_vat and tenant_vat == counterparty_vat:
        logger.warning(f"Counterparty VAT {counterparty_vat} is the tenant's own VAT")
        return AuditCheck.critical_failure(
            CheckType.COUNTERPARTY_INTEGRITY,
            'counterparty_vat',
            "Counterparty VAT equals the tenant's own VAT number",
            hint="Check the document direction and which party is seller and buyer",
            expected=f"not {tenant_vat}",
            actual=counterparty_vat,
        )

    return AuditCheck.passing(
        CheckType.COUNTERPARTY_INTEGRITY, 'counterparty_vat', "Counterparty is not the tenant"
    )
