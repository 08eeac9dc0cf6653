"""
Writing audit entries.

record_audit is the single writer of AuditLog rows. It is called by the
accounts commands inside their transactions, so an action and its audit
entry commit or roll back together.
"""
import json
import logging

from audit.auditable import AuditableRef
from audit.models import AuditLog

logger = logging.getLogger(__name__)


def serialize_changes(changes) -> str | None:
    """Render a change set as stable JSON text for the audit_changes column."""
    if not changes:
        return None
    return json.dumps(changes, sort_keys=True, separators=(",", ":"), default=str)


def record_audit(
    actor,  # ActorContext
    action: int,
    auditable=None,
    *,
    company=None,
    resource_type: str = None,
    resource_id: int = None,
    changes: dict = None,
) -> AuditLog:
    """
    Append one audit entry.

    Args:
        actor: ActorContext; its user, ip_address and user_agent are recorded
        action: AuditLog.Action value
        auditable: Target row (User, Company, CompanyUser) or an AuditableRef
        company: Tenant the action happened in, if any
        resource_type: Defaults to the auditable type tag
        resource_id: Defaults to the auditable id
        changes: Dict serialized into audit_changes

    Returns:
        The saved AuditLog

    Raises:
        ValidationError: action or resource_type missing or out of range
        IntegrityError: no auditable target (the column is NOT NULL)
    """
    if auditable is None or isinstance(auditable, AuditableRef):
        ref = auditable
    else:
        ref = AuditableRef.for_instance(auditable)

    if resource_type is None and ref is not None:
        resource_type = ref.type
    if resource_id is None and ref is not None:
        resource_id = ref.id

    user = actor.user if actor is not None and actor.is_authenticated else None

    entry = AuditLog(
        user=user,
        company=company,
        auditable=ref,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        audit_changes=serialize_changes(changes),
        ip_address=getattr(actor, "ip_address", None),
        user_agent=getattr(actor, "user_agent", None),
    )
    entry.save()

    logger.info(
        "Audit entry recorded",
        extra={
            "audit_log_id": entry.pk,
            "action": entry.get_action_display(),
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": entry.user_id,
            "company_id": entry.company_id,
        },
    )
    return entry
