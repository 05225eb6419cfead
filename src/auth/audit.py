from __future__ import annotations

import logging
from datetime import datetime, timezone

from src.auth.context import AccessRequest
from src.auth.decisions import Decision
from src.observability import log_event

logger = logging.getLogger(__name__)


def log_access(
    action: str,
    request: AccessRequest,
    decision: Decision,
    *,
    request_id: str | None = None,
) -> None:
    """Record one access decision. Never raises and never changes the decision."""
    try:
        principal = request.principal
        org_id = decision.effective_org_id
        if org_id is None and not decision.scoped:
            org_id = request.requested_org_id or (principal.organization_id if principal else None)
        log_event(
            "access_decision",
            level=logging.INFO if decision.allowed else logging.WARNING,
            request_id=request_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            outcome=decision.kind,
            status_code=decision.status_code,
            user_id=principal.id if principal else "anonymous",
            role=principal.role if principal else "none",
            org_id=org_id or "none",
            method=request.method,
            path=request.path,
        )
    except Exception as exc:
        logger.warning("access audit log failed for %s: %s", action, exc)
