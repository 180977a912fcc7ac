from fastapi import APIRouter

router = APIRouter(prefix="/api/trainers/{trainer_id}")

from . import packages, clients

router.include_router(packages.router)
router.include_router(clients.router)
