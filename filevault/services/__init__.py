from filevault.services.auth import credential_store, CredentialStore
from filevault.services.tokens import TokenService
from filevault.services.storage import DiskStorage, StoredFile
from filevault.services.files import FileService, FileStore
from filevault.services.rate_limit import RateLimiter, RateLimitResult

__all__ = [
    "credential_store", "CredentialStore",
    "TokenService",
    "DiskStorage", "StoredFile",
    "FileService", "FileStore",
    "RateLimiter", "RateLimitResult",
]
