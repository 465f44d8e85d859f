from typing import Optional, get_args

from models import AssetStatus, Category, LoanState

VALID_STATUSES = set(get_args(AssetStatus))
VALID_CATEGORIES = set(get_args(Category))
VALID_LOAN_STATES = set(get_args(LoanState))
VALID_SORTS = {"asset_tag", "name", "status", "category", "created_at", "updated_at"}
VALID_LOAN_SORTS = {"borrowed_at", "state"}
VALID_ORDERS = {"asc", "desc"}


def normalize_status(status: Optional[str]) -> Optional[str]:
    if status in VALID_STATUSES:
        return status
    return None


def normalize_category(category: Optional[str]) -> Optional[str]:
    if category in VALID_CATEGORIES:
        return category
    return None


def normalize_loan_state(state: Optional[str]) -> Optional[str]:
    if state in VALID_LOAN_STATES:
        return state
    return None


def normalize_sort(sort: str) -> str:
    if sort in VALID_SORTS:
        return sort
    return "asset_tag"


def normalize_loan_sort(sort: str) -> str:
    if sort in VALID_LOAN_SORTS:
        return sort
    return "borrowed_at"


def normalize_order(order: str) -> str:
    if order in VALID_ORDERS:
        return order
    return "asc"


def normalize_limit(limit: int, *, min_value: int = 1, max_value: int = 500) -> int:
    if limit < min_value:
        return min_value
    if limit > max_value:
        return max_value
    return limit


def normalize_offset(offset: int) -> int:
    if offset < 0:
        return 0
    return offset
