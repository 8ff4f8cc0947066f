"""Terms and policy document route handlers."""
from typing import Any, Optional

from fastapi import APIRouter, Depends

from accounts_api.api.deps import RequireAccess, get_store
from accounts_api.exceptions import NotFoundError
from accounts_api.schemas import ApiResponse, TermsDocument, User
from accounts_api.store.base import AccountStore

router = APIRouter(prefix="/terms", tags=["terms"])

# section slug -> (key path into the terms document, response message)
TERMS_SECTIONS: dict[str, tuple[tuple[str, ...], str]] = {
    "general": (("general_terms",), "General terms retrieved successfully"),
    "employee-procedures": (("employee_procedures",), "Employee procedures retrieved successfully"),
    "regulatory": (("regulatory_disclosures",), "Regulatory disclosures retrieved successfully"),
    "account-policies": (
        ("general_terms", "sections", "account_policies"),
        "Account policies retrieved successfully",
    ),
    "transaction-limits": (
        ("general_terms", "sections", "transaction_limits"),
        "Transaction limits retrieved successfully",
    ),
}

authorized = RequireAccess()


def _lookup(document: dict[str, Any], path: tuple[str, ...]) -> Optional[Any]:
    node: Any = document
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


@router.get("", response_model=ApiResponse[TermsDocument])
async def get_terms(
    user: Optional[User] = Depends(authorized),
    store: AccountStore = Depends(get_store),
):
    """The whole terms document."""
    return ApiResponse[TermsDocument](
        message="Terms and conditions retrieved successfully",
        data=store.get_terms(),
    )


@router.get("/{section}", response_model=ApiResponse[Any])
async def get_terms_section(
    section: str,
    user: Optional[User] = Depends(authorized),
    store: AccountStore = Depends(get_store),
):
    """One section of the terms document."""
    if section not in TERMS_SECTIONS:
        raise NotFoundError("Terms section not found", f"Unknown terms section: {section}")

    path, message = TERMS_SECTIONS[section]
    data = _lookup(store.get_terms(), path)
    if data is None:
        raise NotFoundError("Terms section not found", f"Terms section {section} is not available")

    return ApiResponse[Any](message=message, data=data)
