import boto3
from botocore.client import Config
from eduguide.platform.ports.object_storage import ObjectStoragePort
from eduguide.core.config import settings

class S3Storage(ObjectStoragePort):
    def __init__(self):
        session = boto3.session.Session(
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
        )
        self.s3 = session.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            config=Config(signature_version="s3v4"),
        )
        self.bucket = settings.ATTACHMENTS_BUCKET

    def presign_upload(self, key: str, content_type: str, expires_seconds: int = 7200) -> dict:
        url = self.s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_seconds,
        )
        return {"strategy": "s3-presigned-put", "path": key, "signedUrl": url, "token": None}

    def presign_download(self, key: str, expires_seconds: int = 600) -> str:
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_seconds,
        )
