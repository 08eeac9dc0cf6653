"""
Audit app - append-only record of actions taken against tenant data.

AuditLog rows are written once through audit.commands.record_audit and are
never updated or deleted by application code; they disappear only when the
user or company they belong to is destroyed.
"""
