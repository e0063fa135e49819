import logging

from fastapi import Depends, HTTPException

from rishta.auth.deps import SessionContext, get_current_user

logger = logging.getLogger(__name__)


def require_admin(current_user: SessionContext = Depends(get_current_user)) -> SessionContext:
    if not current_user.is_admin:
        logger.warning(f"[admin] denied user_id={current_user.user_id}")
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return current_user
