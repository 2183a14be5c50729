"""Referencing record kinds and their image reference projections."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EntityKind(Enum):
    CAFE = "cafe"
    PRODUCT = "product"
    USER = "user"
    REVIEW = "review"


@dataclass(frozen=True)
class RecordKind:
    """How one entity kind stores its image reference(s)."""

    kind: EntityKind
    table: str
    field: str
    id_arg: str
    multi: bool = False
    max_refs: int = 1


RECORD_KINDS: dict[EntityKind, RecordKind] = {
    EntityKind.CAFE: RecordKind(EntityKind.CAFE, table="cafes", field="imageStorageId", id_arg="cafeId"),
    EntityKind.PRODUCT: RecordKind(EntityKind.PRODUCT, table="products", field="imageStorageId", id_arg="productId"),
    EntityKind.USER: RecordKind(EntityKind.USER, table="users", field="imageStorageId", id_arg="userId"),
    EntityKind.REVIEW: RecordKind(
        EntityKind.REVIEW,
        table="reviews",
        field="imageStorageIds",
        id_arg="reviewId",
        multi=True,
        max_refs=2,
    ),
}

# Order the optimizer walks record kinds in.
OPTIMIZE_ORDER: tuple[EntityKind, ...] = (
    EntityKind.PRODUCT,
    EntityKind.CAFE,
    EntityKind.USER,
    EntityKind.REVIEW,
)


@dataclass(frozen=True)
class ImageReference:
    kind: EntityKind
    entity_id: str
    field: str
    blob_id: str


@dataclass(frozen=True)
class ImageRecord:
    """A record projected down to its id and image reference field(s)."""

    kind: EntityKind
    entity_id: str
    blob_ids: tuple[str, ...]
    label: str | None = None

    @property
    def record_kind(self) -> RecordKind:
        return RECORD_KINDS[self.kind]

    def references(self) -> list[ImageReference]:
        field_name = self.record_kind.field
        return [
            ImageReference(kind=self.kind, entity_id=self.entity_id, field=field_name, blob_id=blob_id)
            for blob_id in self.blob_ids
            if blob_id
        ]
