"""
Authorization checks run before any mutating operation.
"""

from .admin_gate import AdminAuthGate

__all__ = ["AdminAuthGate"]
