# Import every model so Alembic discovers them

from .integration import IntegrationAccount, Profile
from .ml_cache import MLOrderCache, MLClaimCache
from .ml_claim import MLClaim
from .sync_status import MLSyncStatus, MLClaimsSyncStatus
from .claims_queue import ClaimsQueueItem

__all__ = [
    # accounts
    "IntegrationAccount", "Profile",
    # cache
    "MLOrderCache", "MLClaimCache", "MLClaim",
    # sync / queue
    "MLSyncStatus", "MLClaimsSyncStatus", "ClaimsQueueItem",
]
