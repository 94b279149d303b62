"""
Sponsor feature module.

Sponsors own documents and have a roster of members (owner, editor, staff).
Each sponsor provisions its own roles and document permissions in the RBAC
authority and keeps them in line with its membership.
"""
