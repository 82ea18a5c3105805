# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""JSON-LD documents attached to an oracle entity as linked resources.

Each builder returns a plain dict; it is canonicalized and hashed at upload
time, so field order here does not affect the proof.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..core.exceptions import ValidationError

IXO_PROTOCOL_CONTEXT = "https://w3id.org/ixo/ns/protocol/"
IXO_CONTEXT_V1 = "https://w3id.org/ixo/context/v1"
CREDENTIALS_V2_CONTEXT = "https://www.w3.org/ns/credentials/v2"
SCHEMA_ORG = "https://schema.org"
DOMAIN_CARD_SCHEMA = "https://github.com/ixoworld/domainCards/schemas/ixo-domain-card-1.json"
CLAIM_AUTHORIZATION_PERMISSION = "/ixo.claims.v1beta1.MsgCreateClaimAuthorization"

# One pricing credit is 1000 micro-units of the fee denom.
MICRO_UNITS_PER_CREDIT = 1000


@dataclass(frozen=True)
class OracleProfile:
    """Public profile of an oracle as entered by the operator."""

    org_name: str
    name: str
    logo: str
    cover_image: str
    location: str
    description: str
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OracleProfile:
        return cls(
            org_name=data.get("orgName", data.get("org_name", "")),
            name=data.get("name", ""),
            logo=data.get("logo", ""),
            cover_image=data.get("coverImage", data.get("cover_image", "")),
            location=data.get("location", ""),
            description=data.get("description", ""),
            url=data.get("url") or None,
        )


@dataclass(frozen=True)
class OracleConfig:
    oracle_name: str
    price: int | float

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValidationError("Price must not be negative", field="price", value=self.price)


def profile_document(profile: OracleProfile) -> dict[str, Any]:
    return {
        "@context": {
            "ixo": IXO_PROTOCOL_CONTEXT,
            "@id": "@type",
            "type": "@type",
            "@protected": False,
        },
        "id": "ixo:entity#profile",
        "type": "profile",
        "orgName": profile.org_name,
        "name": profile.name,
        "image": profile.cover_image,
        "logo": profile.logo,
        "brand": profile.org_name,
        "location": profile.location,
        "description": profile.description,
    }


def _image(url: str) -> dict[str, str]:
    return {"type": "schema:ImageObject", "id": url, "contentUrl": url}


def domain_card(
    profile: OracleProfile,
    entity_did: str,
    issuer_did: str,
    valid_from: datetime | None = None,
) -> dict[str, Any]:
    """Domain card verifiable credential describing the oracle as an organization."""
    issued = (valid_from or datetime.now(UTC)).astimezone(UTC)
    subject: dict[str, Any] = {
        "id": entity_did,
        "type": ["ixo:oracle"],
        "additionalType": ["schema:Organization"],
        "name": profile.name,
    }
    if profile.org_name != profile.name:
        subject["alternateName"] = [profile.org_name]
    subject.update(
        {
            "description": profile.description,
            "logo": _image(profile.logo),
            "image": [_image(profile.cover_image)],
            "address": {"type": "schema:PostalAddress", "addressLocality": profile.location},
        }
    )
    if profile.url:
        subject["url"] = profile.url

    return {
        "@context": [
            CREDENTIALS_V2_CONTEXT,
            IXO_CONTEXT_V1,
            {
                "schema": "https://schema.org/",
                "ixo": "https://w3id.org/ixo/vocab/v1",
                "prov": "http://www.w3.org/ns/prov#",
                "proj": "https://linked.data.gov.au/def/project#",
                "xsd": "http://www.w3.org/2001/XMLSchema#",
                "id": "@id",
                "type": "@type",
                "ixo:vector": {"@container": "@list", "@type": "xsd:double"},
                "@protected": True,
            },
        ],
        "id": f"{entity_did}#dmn",
        "type": ["VerifiableCredential", "ixo:DomainCard"],
        "issuer": {"id": issuer_did},
        "validFrom": issued.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "credentialSchema": {"id": DOMAIN_CARD_SCHEMA, "type": "JsonSchema"},
        "credentialSubject": subject,
    }


def _service_context(entity_did: str) -> list[Any]:
    return [
        SCHEMA_ORG,
        {"ixo": IXO_CONTEXT_V1, "oracle": {"@id": entity_did, "@type": "@id"}},
    ]


def authz_config(entity_did: str, oracle_address: str, oracle_name: str) -> dict[str, Any]:
    """Authorization policy: the oracle account may be granted claim authorization."""
    return {
        "@context": _service_context(entity_did),
        "@type": "Service",
        "@id": "oracle:OracleAuthorization",
        "name": "OracleAuthorization",
        "description": "OracleAuthorization",
        "serviceType": "OracleClaimAuthorizationService",
        "requiredPermissions": [CLAIM_AUTHORIZATION_PERMISSION],
        "granteeAddress": oracle_address,
        "granterAddress": "",
        "oracleName": oracle_name,
    }


def pricing_config(entity_did: str, price: int | float, denom: str) -> dict[str, Any]:
    """Monthly subscription pricing in ``denom``."""
    return {
        "@context": _service_context(entity_did),
        "@type": "Service",
        "@id": "oracle:ServiceFeeModel",
        "name": "Pricing",
        "description": "Pricing",
        "serviceType": "",
        "offers": {
            "@type": "Offer",
            "priceCurrency": denom,
            "priceSpecification": {
                "@type": "PaymentChargeSpecification",
                "priceCurrency": denom,
                "price": price * MICRO_UNITS_PER_CREDIT,
                "unitCode": "MON",
                "billingIncrement": 1,
                "billingPeriod": "P1M",
                "priceType": "Subscription",
                "maxPrice": price,
            },
            "eligibleQuantity": {"@type": "QuantitativeValue", "value": 1, "unitCode": "MON"},
        },
    }
