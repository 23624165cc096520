import logging
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.common.exceptions import BadRequestError, ServiceError
from app.config import settings

logger = logging.getLogger(__name__)


class StorageError(ServiceError):
    """The object store rejected or failed a request."""
    status_code = 502

    def __init__(self, detail: str = "File storage is unavailable"):
        super().__init__(detail)


class S3Storage:
    """Thin synchronous wrapper over an S3-compatible bucket. Call it from a thread pool."""

    def __init__(self, client=None, bucket: Optional[str] = None, endpoint: Optional[str] = None):
        self.endpoint = (endpoint or settings.S3_ENDPOINT).rstrip("/")
        self.bucket_name = bucket or settings.S3_BUCKET
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
            config=Config(s3={"addressing_style": "path"}),
        )

    def get_file_url(self, key: str) -> str:
        return f"{self.endpoint}/{self.bucket_name}/{key}"

    def upload_file(self, file_content: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        """Upload an object and return its public URL."""
        if "undefined" in key:
            raise BadRequestError("Invalid file key")
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_content,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error(f"Failed to upload file to S3: {str(e)}")
            raise StorageError("Failed to upload file") from e
        logger.info(f"File uploaded: {key} ({len(file_content)} bytes)")
        return self.get_file_url(key)

    def delete_file(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.error(f"Failed to delete file from S3: {str(e)}")
            raise StorageError("Failed to delete file") from e
        logger.info(f"File deleted: {key}")

    def delete_folder(self, prefix: str, keep: Optional[str] = None) -> int:
        keys = [item["key"] for item in self.list_files(prefix) if item["key"] != keep]
        for key in keys:
            self.delete_file(key)
        return len(keys)

    def get_file(self, key: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.error(f"Failed to read file from S3: {str(e)}")
            raise StorageError("Failed to read file") from e
        return response["Body"].read()

    def list_files(self, prefix: str = "") -> List[Dict]:
        files = []
        kwargs = {"Bucket": self.bucket_name, "Prefix": prefix}
        try:
            while True:
                response = self.s3_client.list_objects_v2(**kwargs)
                for obj in response.get("Contents", []):
                    files.append({"key": obj["Key"], "size": obj.get("Size", 0)})
                if not response.get("IsTruncated"):
                    break
                kwargs["ContinuationToken"] = response["NextContinuationToken"]
        except ClientError as e:
            logger.error(f"Failed to list files in S3: {str(e)}")
            raise StorageError("Failed to list files") from e
        return files

    def create_folder(self, prefix: str) -> str:
        folder = prefix.strip("/") + "/"
        try:
            self.s3_client.put_object(Bucket=self.bucket_name, Key=folder, Body=b"")
        except ClientError as e:
            logger.error(f"Failed to create folder in S3: {str(e)}")
            raise StorageError("Failed to create folder") from e
        logger.info(f"Folder created: {folder}")
        return folder

    def get_file_tree(self, prefix: str = "") -> List[Dict]:
        """
        Folder tree under a prefix.

        Each level is one Delimiter='/' listing: CommonPrefixes become folder
        nodes (walked recursively) and Contents become file nodes.
        """
        prefix = prefix.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        try:
            response = self.s3_client.list_objects_v2(Bucket=self.bucket_name, Prefix=prefix, Delimiter="/")
        except ClientError as e:
            logger.error(f"Failed to list folder in S3: {str(e)}")
            raise StorageError("Failed to read file tree") from e

        nodes = []
        for common in response.get("CommonPrefixes", []):
            folder = common["Prefix"]
            nodes.append({
                "name": folder[len(prefix):].rstrip("/"),
                "path": folder,
                "type": "folder",
                "children": self.get_file_tree(folder),
            })
        for obj in response.get("Contents", []):
            key = obj["Key"]
            # The folder marker object itself
            if key == prefix:
                continue
            nodes.append({
                "name": key[len(prefix):],
                "path": key,
                "type": "file",
                "size": obj.get("Size", 0),
                "url": self.get_file_url(key),
            })
        return nodes


_storage: Optional[S3Storage] = None


def get_storage() -> S3Storage:
    """FastAPI dependency; the client is created on first use."""
    global _storage
    if _storage is None:
        _storage = S3Storage()
    return _storage
