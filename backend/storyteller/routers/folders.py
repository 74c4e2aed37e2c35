"""Folder endpoints, mounted under /api/books/folders."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storyteller.errors import FolderExists, FolderInUse, FolderNotFound
from storyteller.services.catalog import CatalogService, get_catalog_service, is_all_folder

router = APIRouter()


class FolderRequest(BaseModel):
    name: str


def _check_name(name: str) -> str:
    if is_all_folder(name):
        raise HTTPException(status_code=400, detail="Folder name must not be empty or 'All'")
    return name.strip()


@router.get("")
async def list_folders(catalog: CatalogService = Depends(get_catalog_service)):
    """Folder names, always including "All"."""
    return await catalog.list_folders()


@router.post("", status_code=201)
async def create_folder(data: FolderRequest, catalog: CatalogService = Depends(get_catalog_service)):
    name = _check_name(data.name)
    try:
        folder = await catalog.create_folder(name)
    except FolderExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"_id": folder.id, "name": folder.name}


@router.patch("/{name}")
async def rename_folder(
    name: str,
    data: FolderRequest,
    catalog: CatalogService = Depends(get_catalog_service)
):
    new_name = _check_name(data.name)
    try:
        folder = await catalog.rename_folder(name, new_name)
    except FolderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FolderExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"_id": folder.id, "name": folder.name}


@router.delete("/{name}")
async def delete_folder(
    name: str,
    force: bool = False,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Delete a folder. Refused while books are in it, unless force=true."""
    try:
        moved = await catalog.delete_folder(name, force=force)
    except FolderNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FolderInUse as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "booksMoved": moved}
