from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX
from ahaar.core.database import get_db
from ahaar.deps import get_active_principal, list_params, require_active_subscription
from ahaar.models.dining_table import DiningTable
from ahaar.schemas.common import DeleteIds
from ahaar.services.access_control import Principal, require_brand
from ahaar.services.resources import (
    ListParams,
    apply_changes,
    changed_fields,
    delete_by_external_ids,
    ensure_unique,
    generate_external_id,
    get_owned,
    iso,
    list_scoped,
    stamp_created,
)
from ahaar.services.validation import require_field, validate_string
from ahaar.utils.slug import slugify

router = APIRouter(
    prefix=f"{API_PREFIX}/tables",
    tags=["tables"],
    dependencies=[Depends(require_active_subscription)],
)


class TableIn(BaseModel):
    table_name: Optional[str] = None


def _table_to_dict(table: DiningTable) -> dict:
    return {
        "id": table.id,
        "table_id": table.table_id,
        "table_name": table.table_name,
        "table_slug": table.table_slug,
        "brand": table.brand_id,
        "createdBy": table.created_by,
        "createdAt": iso(table.created_at),
        "updatedBy": table.updated_by,
        "updatedAt": iso(table.updated_at),
    }


def _table_name(value: Optional[str]) -> str:
    require_field(value, "Table Name is required")
    return validate_string(value, "Table Name", 2, 30)


@router.post("/create-table")
def create_table(
    payload: TableIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    table_name = _table_name(payload.table_name)
    ensure_unique(
        db,
        DiningTable,
        DiningTable.brand_id == brand_id,
        DiningTable.table_name == table_name,
        message="Table name already exists",
    )

    table = DiningTable(
        table_id=generate_external_id(db, DiningTable),
        table_name=table_name,
        table_slug=slugify(table_name),
        brand_id=brand_id,
    )
    stamp_created(table, principal)
    db.add(table)
    db.commit()
    db.refresh(table)
    return {"success": True, "message": "New table created", "data": _table_to_dict(table)}


@router.get("/get-all")
def list_tables(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        DiningTable,
        params=params,
        search_columns=(DiningTable.table_name, DiningTable.table_slug),
        serializer=_table_to_dict,
        message="Tables retrieved successfully",
        order_by=(DiningTable.table_name.asc(),),
    )


@router.delete("/delete-table")
def delete_tables(
    payload: DeleteIds,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    delete_by_external_ids(db, DiningTable, DiningTable.table_id, payload.ids, principal)
    return {"success": True, "message": "Table deleted successfully"}


@router.patch("/update-table/{table_pk}")
def update_table(
    table_pk: int,
    payload: TableIn,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    table = get_owned(db, DiningTable, table_pk, principal, message="Table not found")
    table_name = _table_name(payload.table_name)
    changes = changed_fields(table, {"table_name": table_name})
    ensure_unique(
        db,
        DiningTable,
        DiningTable.brand_id == table.brand_id,
        DiningTable.table_name == table_name,
        message="Table name already exists",
        exclude_id=table.id,
    )
    changes["table_slug"] = slugify(table_name)
    apply_changes(table, changes, principal)
    db.commit()
    db.refresh(table)
    return {"success": True, "message": "Table updated", "data": _table_to_dict(table)}
