from .api import CatcherApi
from .auth import AuthClient, AuthError
from .object_storage import ObjectStorage, StorageError

__all__ = ["CatcherApi", "AuthClient", "AuthError", "ObjectStorage", "StorageError"]
