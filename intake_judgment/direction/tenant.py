"""
Tenant Identity

The owning tenant's identity, passed explicitly to every resolver call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Mapping, Tuple

from ..parser.normalizers import IdentifierNormalizer, NameNormalizer


@dataclass(frozen=True)
class TenantIdentity:
    """
    Who "we" are when deciding a document's direction.

    Attributes:
        vat_number: Tenant VAT number, any formatting
        legal_name: Registered company name
        display_name: Trading name, if different
        associated_person_names: People whose name may stand for the tenant
            (e.g. the owner of a sole proprietorship)
    """

    vat_number: Optional[str] = None
    legal_name: Optional[str] = None
    display_name: Optional[str] = None
    associated_person_names: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'associated_person_names', tuple(self.associated_person_names))

    @property
    def normalized_vat(self) -> Optional[str]:
        return IdentifierNormalizer.vat(self.vat_number)

    @property
    def normalized_names(self) -> List[str]:
        """Every non-blank tenant name, normalized, without duplicates."""
        names: List[str] = []
        for raw in (self.legal_name, self.display_name, *self.associated_person_names):
            name = NameNormalizer.normalize(raw)
            if name and name not in names:
                names.append(name)
        return names

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TenantIdentity':
        persons = data.get('associated_person_names', data.get('associatedPersonNames')) or []
        return cls(
            vat_number=data.get('vat_number', data.get('vatNumber')),
            legal_name=data.get('legal_name', data.get('legalName')),
            display_name=data.get('display_name', data.get('displayName')),
            associated_person_names=tuple(str(p) for p in persons),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vat_number': self.vat_number,
            'legal_name': self.legal_name,
            'display_name': self.display_name,
            'associated_person_names': list(self.associated_person_names),
        }
