# accounts/__init__.py
"""
Accounts app - users, companies and memberships.

This app provides:
- User: Account holder with a global role and soft deletion
- Company: Tenant organization
- CompanyUser: User-Company relationship with a per-company role
- ActorContext: Authorization context utilities
- commands: The only write path; every command records an audit entry
"""
