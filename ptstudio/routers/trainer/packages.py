"""
Trainer Packages Router - session package catalog
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, Field

from ptstudio.ledger import StoreError
from ptstudio.middleware import get_ledger_store, require_trainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["Trainer - Packages"])


# ============== Request Models ==============

class PackageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    session_count: int = Field(..., ge=1)
    price: float = Field(..., gt=0)


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    session_count: Optional[int] = Field(None, ge=1)
    price: Optional[float] = Field(None, gt=0)


# ============== Helper ==============

def _get_own_package(store, trainer_id: int, package_id: int) -> dict:
    package = store.get_package(package_id)
    if not package or package["trainer_id"] != trainer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "PACKAGE_NOT_FOUND", "message": "Package not found"},
        )
    return package


def _format_package(package: dict) -> dict:
    package = dict(package)
    package["price"] = float(package["price"]) if package.get("price") is not None else 0
    return package


# ============== Endpoints ==============

@router.get("")
def get_packages(trainer: dict = Depends(require_trainer), store=Depends(get_ledger_store)):
    """Trainer's packages, newest first, with purchase counts"""
    try:
        packages = store.list_packages(trainer["id"])
        return {"success": True, "data": [_format_package(p) for p in packages]}

    except StoreError as e:
        logger.error(f"Error getting packages: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_PACKAGES_FAILED", "message": "Could not load packages"},
        )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_package(request: PackageCreate, trainer: dict = Depends(require_trainer), store=Depends(get_ledger_store)):
    """Create a session package"""
    try:
        package = store.insert_package(trainer["id"], request.name.strip(), request.session_count, request.price)
        logger.info(f"Package {package['id']} created by trainer {trainer['id']}")
        return {
            "success": True,
            "message": "Package created",
            "data": _format_package(package),
        }

    except StoreError as e:
        logger.error(f"Error creating package: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CREATE_PACKAGE_FAILED", "message": "Could not create package"},
        )


@router.put("/{package_id}")
def update_package(
    package_id: int,
    request: PackageUpdate,
    trainer: dict = Depends(require_trainer),
    store=Depends(get_ledger_store),
):
    """Update a package that has not been sold yet"""
    try:
        _get_own_package(store, trainer["id"], package_id)

        fields = request.model_dump(exclude_none=True)
        if not fields:
            return {"success": True, "message": "No changes"}

        # Purchases carry the session_count they were sold with
        if store.package_has_purchases(package_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error_code": "PACKAGE_IN_USE",
                    "message": "Package has been purchased and can no longer be changed",
                },
            )

        if "name" in fields:
            fields["name"] = fields["name"].strip()
        store.update_package(package_id, fields)

        return {"success": True, "message": "Package updated"}

    except HTTPException:
        raise
    except StoreError as e:
        logger.error(f"Error updating package: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "UPDATE_PACKAGE_FAILED", "message": "Could not update package"},
        )


@router.delete("/{package_id}")
def delete_package(package_id: int, trainer: dict = Depends(require_trainer), store=Depends(get_ledger_store)):
    """Delete a package, blocked while any purchase references it"""
    try:
        _get_own_package(store, trainer["id"], package_id)

        if store.package_has_purchases(package_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error_code": "PACKAGE_IN_USE",
                    "message": "Cannot delete package because it has purchases",
                },
            )

        store.delete_package(package_id, trainer_id=trainer["id"])
        return {"success": True, "message": "Package deleted"}

    except HTTPException:
        raise
    except StoreError as e:
        logger.error(f"Error deleting package: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "DELETE_PACKAGE_FAILED", "message": "Could not delete package"},
        )
