"""
S3 storage client for reference image uploads
"""
import uuid
import boto3
from botocore.exceptions import ClientError
from stylestudio.config.settings import settings
import logging
logger = logging.getLogger(__name__)

EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/webp": ".webp", "image/gif": ".gif"}


class S3Client:
    """Reference image bucket; S3_ENDPOINT_URL points it at S3-compatible storage"""
    def __init__(self, client=None):
        """
        Initialize S3 client
        Args:
            client: boto3 S3 client (built from settings when omitted)
        """
        self.client = client or boto3.client(
            's3',
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL
        )
        self.bucket_name = settings.S3_BUCKET_NAME

    def object_url(self, key: str) -> str:
        if settings.S3_ENDPOINT_URL:
            return f"{settings.S3_ENDPOINT_URL}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"

    def upload_reference_image(self, image_data: bytes, content_type: str, user_id: str) -> str:
        """
        Store a reference image under the user's prefix
        Args:
            image_data: Image bytes, already normalized
            content_type: MIME type, also picks the key extension
            user_id: Owner of the upload
        Returns:
            Public URL of the stored object
        """
        key = f"reference-images/{user_id}/{uuid.uuid4()}{EXTENSIONS.get(content_type, '.png')}"
        try:
            self.client.put_object(Bucket=self.bucket_name, Key=key, Body=image_data, ContentType=content_type)
        except ClientError as e:
            logger.error(f"Error uploading reference image to S3: {e}")
            raise
        url = self.object_url(key)
        logger.info(f"Reference image uploaded to S3: {url}")
        return url


_s3_client = None


def get_s3_client() -> S3Client:
    """Global S3 client instance, created on first use"""
    global _s3_client
    if _s3_client is None:
        _s3_client = S3Client()
    return _s3_client
