"""
Licensing Domain

Seat licenses bought through the billing subscription:
- service.py     LicenseService (seat reconciliation, attach/detach/revoke)
- repository.py  License queries
- keys.py        License key generation
- router.py      /licenses endpoints
"""

from .router import router
from .service import LicenseService, ReconcileResult

__all__ = ["router", "LicenseService", "ReconcileResult"]
