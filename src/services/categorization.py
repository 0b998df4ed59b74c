"""
Manual categorization of ledger rows.
"""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from src.core.exceptions import ConflictError, ValidationError
from src.models.unified_sale import UnifiedSale
from src.models.restaurant import ELEVATED_ROLES
from src.services.access import Caller, require_elevated_access, require_restaurant_access
from src.services.ledger import get_tenant_category, get_tenant_sale

logger = logging.getLogger(__name__)

AI_CONFIDENCE_LEVELS = ("high", "medium", "low")


def _clear_suggestion(sale: UnifiedSale) -> None:
    sale.suggested_category_id = None
    sale.ai_confidence = None
    sale.ai_reasoning = None


def categorize_sale(
    db: Session,
    restaurant_id: UUID,
    sale_id: UUID,
    category_id: UUID,
    caller: Caller,
) -> UnifiedSale:
    """
    Assign a category to a single (non-split) sale.

    Any pending AI suggestion is cleared: once a human has decided, the
    suggestion is stale.

    Raises:
        AuthorizationError: caller is not an owner or manager
        NotFoundError: sale or category is not in this restaurant
        ConflictError: the sale is split (its categories live on the allocations)
    """
    require_elevated_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    get_tenant_category(db, restaurant_id, category_id)
    if sale.is_split:
        raise ConflictError(f"Sale {sale_id} is split; categorize its allocations instead")

    sale.category_id = category_id
    sale.is_categorized = True
    _clear_suggestion(sale)
    db.commit()
    db.refresh(sale)

    logger.info(f"Sale {sale_id} categorized as {category_id} by {caller}")
    return sale


def uncategorize_sale(db: Session, restaurant_id: UUID, sale_id: UUID, caller: Caller) -> UnifiedSale:
    """Re-open a categorized sale for review."""
    require_elevated_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    if sale.is_split:
        raise ConflictError(f"Sale {sale_id} is split; re-split it to change its categories")

    sale.category_id = None
    sale.is_categorized = False
    db.commit()
    db.refresh(sale)
    return sale


def record_category_suggestion(
    db: Session,
    restaurant_id: UUID,
    sale_id: UUID,
    category_id: UUID,
    confidence: str,
    reasoning: str | None,
    caller: Caller,
) -> bool:
    """
    Store an advisory category suggestion from the categorization worker.

    Suggestions never override a decision: categorized or split sales are left
    untouched and False is returned.
    """
    require_restaurant_access(db, caller, restaurant_id, roles=ELEVATED_ROLES, allow_service=True)
    if confidence not in AI_CONFIDENCE_LEVELS:
        raise ValidationError(
            f"confidence must be one of {', '.join(AI_CONFIDENCE_LEVELS)}", field="confidence"
        )
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    get_tenant_category(db, restaurant_id, category_id)
    if sale.is_categorized or sale.is_split:
        return False

    sale.suggested_category_id = category_id
    sale.ai_confidence = confidence
    sale.ai_reasoning = reasoning
    db.commit()
    return True
