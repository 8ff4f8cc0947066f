"""HTTP routers for the consumer accounts API."""
from fastapi import APIRouter

from accounts_api.api import accounts, auth, terms

router = APIRouter()
router.include_router(auth.router)
router.include_router(accounts.router)
router.include_router(accounts.customers_router)
router.include_router(terms.router)

__all__ = ["router"]
