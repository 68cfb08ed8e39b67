import secrets
import string
import time
from typing import BinaryIO, Union
from botocore.exceptions import NoCredentialsError, ClientError
from .config import (
    ENVIRONMENT,
    S3_BUCKET_NAME,
    S3_ENDPOINT_URL,
    S3_PUBLIC_URL,
    S3_ACCESS_KEY_ID,
    S3_SECRET_ACCESS_KEY,
)
from .errors import StorageError
from .logger import logger

UPLOADS_PREFIX = "uploads/"
EDITED_PREFIX = "uploads/edited/"

# Environment-based folder structure
S3_FOLDER_PREFIX = f"{ENVIRONMENT}/"

TOKEN_ALPHABET = string.ascii_letters + string.digits

# Global variable to hold the client, initialized to None
s3_client = None

def get_s3_client():
    """Creates and caches the S3 client to be loaded lazily."""
    global s3_client
    if s3_client is None:
        import boto3
        from botocore.config import Config

        config = Config(
            max_pool_connections=10,
            retries={'max_attempts': 3, 'mode': 'adaptive'},
            tcp_keepalive=True
        )

        s3_client = boto3.client(
            's3',
            endpoint_url=S3_ENDPOINT_URL,
            aws_access_key_id=S3_ACCESS_KEY_ID,
            aws_secret_access_key=S3_SECRET_ACCESS_KEY,
            config=config
        )
    return s3_client

def create_bucket_if_not_exists():
    """Ensures the S3 bucket exists."""
    client = get_s3_client()
    try:
        client.head_bucket(Bucket=S3_BUCKET_NAME)
        logger.info(f"S3 bucket '{S3_BUCKET_NAME}' exists and is accessible")
    except ClientError as e:
        if e.response['Error']['Code'] == '404':
            logger.info(f"Bucket '{S3_BUCKET_NAME}' not found, creating it")
            client.create_bucket(Bucket=S3_BUCKET_NAME)
        else:
            raise

def generate_secure_token(length: int = 16) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))

def secure_upload_path(original_file_name: str) -> str:
    """
    Storage path for a customer upload: ``uploads/{millis}-{token}.{ext}``.
    The original file name never reaches the storage URL.
    """
    ext = original_file_name.rsplit(".", 1)[-1].lower() if "." in original_file_name else "bin"
    return f"{UPLOADS_PREFIX}{int(time.time() * 1000)}-{generate_secure_token(16)}.{ext}"

def edited_upload_path(order_item_id: str, original_file_name: str) -> str:
    ext = original_file_name.rsplit(".", 1)[-1].lower() if "." in original_file_name else "bin"
    return f"{EDITED_PREFIX}edited_{order_item_id}_{int(time.time() * 1000)}.{ext}"

def public_url(path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{S3_PUBLIC_URL}/{S3_BUCKET_NAME}/{S3_FOLDER_PREFIX}{path}"

def upload_file(file_data: Union[bytes, BinaryIO], path: str, content_type: str = "image/jpeg") -> str:
    """Uploads a file to S3 under ``path`` and returns its public URL."""
    client = get_s3_client()
    full_key = S3_FOLDER_PREFIX + path
    try:
        client.put_object(
            Bucket=S3_BUCKET_NAME,
            Key=full_key,
            Body=file_data,
            ContentType=content_type,
            CacheControl="max-age=3600"
        )
    except NoCredentialsError:
        raise StorageError("Storage credentials not found. Please configure your environment.")
    except ClientError as e:
        logger.error(f"Upload of {full_key} failed: {e}")
        raise StorageError(f"Failed to upload {path}: {e}")
    return public_url(path)
