"""Building blocks shared by the per-entity routers."""
from __future__ import annotations

import math
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ahaar.core.errors import Conflict, NoOp, NotFound, ValidationError
from ahaar.models.brand import Brand
from ahaar.services.access_control import Principal, owned_by, resolve_scope
from ahaar.utils.clock import utcnow

ENTITY_ID_BYTES = 12
ACCOUNT_ID_BYTES = 16


@dataclass(frozen=True)
class ListParams:
    search: str | None = None
    brand: str | None = None
    page: int = 1
    limit: int | None = None


def generate_external_id(db: Session, model: Any, *, nbytes: int = ENTITY_ID_BYTES) -> str:
    """``<row count + 1>-<random hex>``; the hex part carries the uniqueness."""
    count = db.query(func.count(model.id)).scalar() or 0
    return f"{count + 1}-{secrets.token_hex(nbytes)}"


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def pagination_meta(count: int, page: int, limit: int | None) -> dict[str, int | None] | None:
    if not limit:
        return None
    total_pages = math.ceil(count / limit)
    return {
        "totalPages": total_pages,
        "currentPage": page,
        "previousPage": page - 1 if page - 1 > 0 else None,
        "nextPage": page + 1 if page + 1 <= total_pages else None,
    }


def list_envelope(message: str, *, count: int, params: ListParams, data: list[dict]) -> dict:
    return {
        "success": True,
        "message": message,
        "data_found": count,
        "pagination": pagination_meta(count, params.page, params.limit),
        "data": data,
    }


def paginate(query: Query, params: ListParams) -> list:
    if params.limit:
        query = query.offset((params.page - 1) * params.limit).limit(params.limit)
    return query.all()


def brand_info_map(db: Session, brand_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    wanted = {brand_id for brand_id in brand_ids if brand_id}
    if not wanted:
        return {}
    brands = db.query(Brand).filter(Brand.brand_id.in_(wanted)).all()
    return {
        brand.brand_id: {
            "brand_id": brand.brand_id,
            "brand_name": brand.brand_name,
            "brand_logo": {"id": brand.logo_id, "url": brand.logo_url},
        }
        for brand in brands
    }


def list_scoped(
    db: Session,
    principal: Principal,
    model: Any,
    *,
    params: ListParams,
    search_columns: Sequence[Any],
    serializer: Callable[[Any], dict],
    message: str,
    order_by: Sequence[Any],
    extra_criteria: Sequence[Any] = (),
) -> dict:
    """Scoped, filtered, sorted and optionally paginated listing in the list envelope."""
    criteria = resolve_scope(
        principal,
        model.brand_id,
        search=params.search,
        search_columns=search_columns,
        brand_filter=params.brand,
    )
    query = db.query(model).filter(*criteria, *extra_criteria)
    count = query.order_by(None).count()
    rows = paginate(query.order_by(*order_by), params)

    data = [serializer(row) for row in rows]
    if principal.is_super_admin:
        info = brand_info_map(db, (row.brand_id for row in rows))
        for row, payload in zip(rows, data):
            payload["brand_info"] = info.get(row.brand_id)

    return list_envelope(message, count=count, params=params, data=data)


def ensure_unique(db: Session, model: Any, *criteria: Any, message: str, exclude_id: int | None = None) -> None:
    query = db.query(model.id).filter(*criteria)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise Conflict(message)


def stamp_created(entity: Any, principal: Principal) -> None:
    entity.created_by = principal.user_id
    entity.created_at = utcnow()


def get_owned(db: Session, model: Any, entity_pk: int, principal: Principal, *, message: str) -> Any:
    entity = db.query(model).filter(model.id == entity_pk, *owned_by(principal, model.brand_id)).first()
    if entity is None:
        raise NotFound(message)
    return entity


def changed_fields(entity: Any, candidate: dict[str, Any]) -> dict[str, Any]:
    """Subset of ``candidate`` whose values differ from ``entity``; NoOp when empty."""
    changes = {
        field: value
        for field, value in candidate.items()
        if value is not None and getattr(entity, field) != value
    }
    if not changes:
        raise NoOp()
    return changes


def apply_changes(entity: Any, changes: dict[str, Any], principal: Principal) -> None:
    for field, value in changes.items():
        setattr(entity, field, value)
    entity.updated_by = principal.user_id
    entity.updated_at = utcnow()


def validate_ids(ids: Any) -> list[str]:
    if not isinstance(ids, list) or not all(isinstance(item, str) and item.strip() for item in ids):
        raise ValidationError("ids must be an array")
    if not ids:
        raise ValidationError("ids must not be empty")
    return [item.strip() for item in ids]


def delete_by_external_ids(
    db: Session,
    model: Any,
    id_column: Any,
    ids: Any,
    principal: Principal,
) -> int:
    """Delete every listed id the principal owns; NotFound when nothing matched."""
    wanted = validate_ids(ids)
    deleted = (
        db.query(model)
        .filter(id_column.in_(wanted), *owned_by(principal, model.brand_id))
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        db.rollback()
        raise NotFound("Document not found for deletion")
    db.commit()
    return deleted
