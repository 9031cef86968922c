"""
Token lifecycle for tokenguard: issuance, validation, rotation and session management.
"""

from .keys import SessionKeys, escape_glob
from .types import AccessTokenRecord, RefreshTokenRecord
from .issuer import TokenIssuer
from .validator import TokenValidator, strip_bearer
from .refresh import RefreshCoordinator
from .sessions import SessionRegistry
from .service import BearerTokenService

__all__ = [
    "SessionKeys",
    "escape_glob",
    "AccessTokenRecord",
    "RefreshTokenRecord",
    "TokenIssuer",
    "TokenValidator",
    "strip_bearer",
    "RefreshCoordinator",
    "SessionRegistry",
    "BearerTokenService",
]
