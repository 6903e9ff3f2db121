"""
Tests for direction resolution and the counterparty invariant.
"""

from intake_judgment.doctypes import DocumentType
from intake_judgment.direction import (
    DirectionResolver,
    DocumentDirection,
    ResolutionMethod,
    TenantIdentity,
    check_counterparty_integrity,
)
from intake_judgment.ensemble import ExtractionCandidate
from intake_judgment.validation import CheckType, Severity


TENANT = TenantIdentity(
    vat_number='BE 0123.456.789',
    legal_name='Acme Consulting NV',
    associated_person_names=('Jan Peeters',),
)


def make_data(**fields):
    return ExtractionCandidate(fields=fields, confidence=0.9)


class TestTenantIdentity:
    """Tests for tenant identity normalization."""

    def test_normalized_vat(self):
        assert TENANT.normalized_vat == 'BE0123456789'

    def test_normalized_names(self):
        assert TENANT.normalized_names == ['acme consulting nv', 'jan peeters']

    def test_from_camel_case(self):
        tenant = TenantIdentity.from_dict({'vatNumber': 'BE0123456789', 'legalName': 'Acme'})
        assert tenant.normalized_vat == 'BE0123456789'
        assert tenant.legal_name == 'Acme'


class TestDirectionResolver:
    """Tests for two-party and single-party direction rules."""

    def setup_method(self):
        self.resolver = DirectionResolver()

    def test_seller_vat_match_is_outbound(self):
        data = make_data(seller_vat='BE0123456789', buyer_vat='BE0987654321')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.OUTBOUND
        assert resolution.source is ResolutionMethod.VAT_MATCH
        assert resolution.confidence == 1.0
        assert resolution.counterparty_vat == 'BE0987654321'

    def test_buyer_vat_match_is_inbound(self):
        data = make_data(seller_vat='NL123456789B01', buyer_vat='be0123456789')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.INBOUND
        assert resolution.counterparty_vat == 'NL123456789B01'

    def test_bill_supplier_fields(self):
        data = make_data(supplier_vat='NL123456789B01', buyer_vat='BE0123456789')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.BILL)
        assert resolution.direction is DocumentDirection.INBOUND

    def test_name_match(self):
        data = make_data(seller_name='Telenet BV', buyer_name='ACME Consulting N.V.')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.INBOUND
        assert resolution.source is ResolutionMethod.NAME_MATCH
        assert resolution.confidence == 0.8

    def test_associated_person_name(self):
        data = make_data(seller_name='Jan Peeters', buyer_name='Some Client BV')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)
        assert resolution.direction is DocumentDirection.OUTBOUND

    def test_both_names_match_falls_through(self):
        data = make_data(seller_name='Acme Consulting', buyer_name='Acme Consulting NV')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)
        assert resolution.direction is DocumentDirection.UNKNOWN

    def test_hint(self):
        data = make_data(direction_hint='Incoming', direction_hint_confidence='0.7')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.INBOUND
        assert resolution.source is ResolutionMethod.AI_HINT
        assert resolution.confidence == 0.7

    def test_hint_default_confidence(self):
        data = make_data(direction_hint='outbound')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)
        assert resolution.confidence == 0.6

    def test_nothing_matches(self):
        data = make_data(seller_name='Foo', buyer_name='Bar')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.UNKNOWN
        assert resolution.source is ResolutionMethod.UNKNOWN
        assert not resolution.is_resolved

    def test_no_data(self):
        resolution = self.resolver.resolve(None, TENANT, DocumentType.INVOICE)
        assert resolution.direction is DocumentDirection.UNKNOWN

    def test_receipt_from_other_merchant_is_inbound(self):
        data = make_data(merchant_name='Delhaize', merchant_vat='BE0402206045')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.RECEIPT)

        assert resolution.direction is DocumentDirection.INBOUND
        assert resolution.counterparty_vat == 'BE0402206045'

    def test_receipt_issued_by_tenant_is_outbound(self):
        data = make_data(merchant_name='Acme Consulting NV')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.RECEIPT)
        assert resolution.direction is DocumentDirection.OUTBOUND

    def test_resolution_is_deterministic(self):
        data = make_data(seller_vat='BE0123456789', buyer_vat='BE0987654321')
        first = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)
        assert first == self.resolver.resolve(data, TENANT, DocumentType.INVOICE)


class TestCounterpartyIntegrity:
    """The counterparty must never be the tenant."""

    def setup_method(self):
        self.resolver = DirectionResolver()

    def test_both_parties_carry_tenant_vat(self):
        data = make_data(seller_vat='BE0123456789', buyer_vat='BE 0123 456 789')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)

        assert resolution.direction is DocumentDirection.UNKNOWN
        assert resolution.counterparty_vat == 'BE0123456789'

        check = check_counterparty_integrity(resolution, TENANT)
        assert check.check_type is CheckType.COUNTERPARTY_INTEGRITY
        assert check.severity is Severity.CRITICAL
        assert not check.passed

    def test_distinct_counterparty_passes(self):
        data = make_data(seller_vat='BE0123456789', buyer_vat='BE0987654321')
        resolution = self.resolver.resolve(data, TENANT, DocumentType.INVOICE)
        assert check_counterparty_integrity(resolution, TENANT).passed

    def test_blank_vats_pass(self):
        resolution = self.resolver.resolve(make_data(), TenantIdentity(), DocumentType.INVOICE)
        assert check_counterparty_integrity(resolution, None).passed
