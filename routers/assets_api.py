from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import crud
from dependencies import get_db
from errors import NotFoundError
from filter_helpers import (
    normalize_category,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_sort,
    normalize_status,
)
from models import Asset, AssetIn, AssetUpdate, AssetsMeta, Message

router = APIRouter()


@router.get("/assets", response_model=list[Asset])
def list_assets_api(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    sort: str = "asset_tag",
    order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return crud.list_assets_filtered(
        db,
        q=q or None,
        status=normalize_status(status),
        category=normalize_category(category),
        sort=normalize_sort(sort),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/assets/meta", response_model=AssetsMeta)
def assets_meta_api(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    meta = crud.assets_meta(
        db,
        q=q or None,
        status=normalize_status(status),
        category=normalize_category(category),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )
    return AssetsMeta(**meta)


@router.post("/assets", response_model=Asset, status_code=201)
def create_asset_api(
    body: AssetIn,
    db: Session = Depends(get_db),
):
    return crud.create_asset(db, body)


@router.get("/assets/by-tag/{asset_tag}", response_model=Asset)
def get_asset_by_tag_api(
    asset_tag: str,
    db: Session = Depends(get_db),
):
    asset = crud.get_asset_by_tag(db, asset_tag)
    if not asset:
        raise NotFoundError("asset not found")
    return asset


@router.get("/assets/{asset_id}", response_model=Asset)
def get_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise NotFoundError("asset not found")
    return asset


@router.patch("/assets/{asset_id}", response_model=Asset)
def update_asset_api(
    asset_id: int,
    body: AssetUpdate,
    db: Session = Depends(get_db),
):
    return crud.update_asset(db, asset_id, body)


@router.delete("/assets/{asset_id}", response_model=Message)
def delete_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
):
    crud.delete_asset(db, asset_id)
    return Message(message="Asset deleted successfully")
