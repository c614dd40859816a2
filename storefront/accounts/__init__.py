"""
User profiles and the audit trail.
"""

from storefront.accounts.audit import AuditTrail
from storefront.accounts.users import UserService

__all__ = ["AuditTrail", "UserService"]
