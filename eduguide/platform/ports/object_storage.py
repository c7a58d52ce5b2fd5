from typing import Protocol, runtime_checkable

@runtime_checkable
class ObjectStoragePort(Protocol):
    def presign_upload(self, key: str, content_type: str, expires_seconds: int = 7200) -> dict: ...
    def presign_download(self, key: str, expires_seconds: int = 600) -> str: ...
