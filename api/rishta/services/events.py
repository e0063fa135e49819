import logging
from typing import Any

from sqlalchemy import insert

from ..models import ProductEvent

logger = logging.getLogger(__name__)


def log_product_event(
    db,
    *,
    event_name: str,
    user_id: str | None = None,
    properties: dict[str, Any] | None = None,
) -> None:
    properties = properties or {}
    db.execute(
        insert(ProductEvent.__table__).values(
            user_id=user_id,
            event_name=event_name,
            properties=properties,
        )
    )
    logger.debug(f"[event] {event_name} user_id={user_id} properties={properties}")
