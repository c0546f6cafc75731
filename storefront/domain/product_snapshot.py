"""
ProductSnapshot value object.

A snapshot captures what the customer bought (name, SKU, slug, variant
attributes) at the moment the order line was created. It is never re-derived
from the live catalog entry, so historical orders keep showing what was
purchased even after the product changes.
"""

import copy
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from storefront.domain.errors import ProductSnapshotErrors
from storefront.domain.results import Result


class ProductSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    sku: Optional[str] = None
    slug: Optional[str] = None
    variant_sku: Optional[str] = None
    variant_attributes: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Product name cannot be empty")
        return v.strip()

    @classmethod
    def create(
        cls,
        name: Optional[str],
        sku: Optional[str] = None,
        slug: Optional[str] = None,
        variant_sku: Optional[str] = None,
        variant_attributes: Optional[Dict[str, Any]] = None,
    ) -> Result["ProductSnapshot"]:
        if name is None or not name.strip():
            return Result.failure(ProductSnapshotErrors.NAME_REQUIRED)

        # Copy so later changes to the caller's dict never reach the snapshot
        return Result.success(
            cls(
                name=name,
                sku=sku,
                slug=slug,
                variant_sku=variant_sku,
                variant_attributes=copy.deepcopy(variant_attributes),
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.sku and self.sku.strip():
            data["sku"] = self.sku
        if self.slug and self.slug.strip():
            data["slug"] = self.slug
        if self.variant_sku and self.variant_sku.strip():
            data["variant_sku"] = self.variant_sku
        if self.variant_attributes:
            data["variant_attributes"] = copy.deepcopy(self.variant_attributes)
        return data

    @classmethod
    def from_dict(
        cls, data: Optional[Dict[str, Any]]
    ) -> Result["ProductSnapshot"]:
        if data is None:
            return Result.failure(ProductSnapshotErrors.INVALID_DATA)

        variant_attributes = data.get("variant_attributes")
        if variant_attributes is not None and not isinstance(
            variant_attributes, dict
        ):
            return Result.failure(ProductSnapshotErrors.INVALID_DATA)

        def _text(key: str) -> Optional[str]:
            value = data.get(key)
            return None if value is None else str(value)

        return cls.create(
            name=_text("name"),
            sku=_text("sku"),
            slug=_text("slug"),
            variant_sku=_text("variant_sku"),
            variant_attributes=variant_attributes,
        )
