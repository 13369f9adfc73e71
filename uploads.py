import io
import logging
from functools import lru_cache
from typing import Optional, Protocol

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import (
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_TIMEOUT,
)

logger = logging.getLogger(__name__)


class ImageHost(Protocol):
    def upload(self, data: bytes) -> Optional[str]:
        ...


class CloudinaryHost:
    """
    Image uploads through the Cloudinary SDK

    upload() returns the secure_url of the stored image, or None when the
    upload fails; callers decide whether a missing URL is fatal.
    """

    def __init__(self, cloud_name: str = None, api_key: str = None,
                 api_secret: str = None, timeout: float = None):
        self.cloud_name = cloud_name or CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or CLOUDINARY_API_KEY
        self.api_secret = api_secret or CLOUDINARY_API_SECRET
        self.timeout = timeout or CLOUDINARY_TIMEOUT
        if self.configured:
            cloudinary.config(
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True,
            )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload(self, data: bytes) -> Optional[str]:
        if not data:
            return None
        if not self.configured:
            logger.error("Cloudinary credentials not configured. Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET")
            return None

        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), timeout=self.timeout)
        except CloudinaryError as e:
            logger.error(f"Image upload failed: {e}")
            return None

        url = result.get("secure_url")
        if not url:
            logger.error("Image upload response carried no secure_url")
        return url


@lru_cache()
def get_image_host() -> ImageHost:
    return CloudinaryHost()
