"""
Clinic Stock Kernel

Medical-supply stock tracking for a clinic:
- Atomic ingress/egress with an append-only movement ledger
- Critical-stock detection and advisory alerts
- Login with consecutive-failure lockout
- User administration with soft delete
- In-memory and SQLAlchemy persistence backends
"""

__version__ = "0.1.0"
