import hashlib
import hmac
import os
import time
from urllib.parse import quote
from eduguide.platform.ports.object_storage import ObjectStoragePort
from eduguide.core.config import settings

class LocalFilesystemStorage(ObjectStoragePort):
    """Dev storage: files live under LOCAL_STORAGE_ROOT, URLs are HMAC-signed with JWT_SECRET."""

    def __init__(self, root: str | None = None):
        self.root = os.path.abspath(root or settings.LOCAL_STORAGE_ROOT)
        os.makedirs(self.root, exist_ok=True)

    def _signed_url(self, key: str, op: str, expires_seconds: int) -> str:
        expires = int(time.time()) + expires_seconds
        msg = f"{op}:{key}:{expires}".encode()
        sig = hmac.new(settings.JWT_SECRET.encode(), msg, hashlib.sha256).hexdigest()
        base = settings.LOCAL_STORAGE_BASE_URL.rstrip("/")
        return f"{base}/{settings.ATTACHMENTS_BUCKET}/{quote(key)}?op={op}&expires={expires}&sig={sig}"

    def presign_upload(self, key: str, content_type: str, expires_seconds: int = 7200) -> dict:
        url = self._signed_url(key, "put", expires_seconds)
        token = url.rsplit("sig=", 1)[1]
        return {"strategy": "local-signed-put", "path": key, "signedUrl": url, "token": token}

    def presign_download(self, key: str, expires_seconds: int = 600) -> str:
        return self._signed_url(key, "get", expires_seconds)
