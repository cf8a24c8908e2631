from fastapi import APIRouter

from .endpoints import health, key_cards

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(key_cards.router)
