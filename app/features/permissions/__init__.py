"""
Permission management feature module.

Implements the shared Role-Based Access Control (RBAC) authority: roles,
permissions, and their assignment to each other and to user accounts.
"""
