"""Cross-account permissions for the pipeline's own execution identities."""

from crossdeploy.security.trust import (
    BOOTSTRAP_ROLE_KINDS,
    CrossAccountTrustManager,
    TrustGrant,
)

__all__ = [
    "BOOTSTRAP_ROLE_KINDS",
    "CrossAccountTrustManager",
    "TrustGrant",
]
