"""
Image Processing and Upload Utilities for Newsdesk Workers

Uses:
- Pillow for resizing (max 1080px width, no enlargement) and WEBP encoding
- Cloudinary for hosting

Used by the manual upload endpoint and, when REHOST_IMAGES is enabled, by
the queue worker to copy social/feed photos to our own host.
"""

import os
import time
import logging
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.uploader
import requests
from PIL import Image

from ..config.settings import HTTP_TIMEOUT_SECONDS
from ..errors import AssetUploadError

logger = logging.getLogger(__name__)

MAX_WIDTH = 1080
WEBP_QUALITY = 80


class ImageClient:
    """Image optimization and hosting wrapper"""

    def __init__(self, cloudinary_url: str = None):
        self.cloudinary_url = cloudinary_url or os.environ.get('CLOUDINARY_URL')
        if self.cloudinary_url:
            cloudinary.config(cloudinary_url=self.cloudinary_url)

    @property
    def configured(self) -> bool:
        return bool(self.cloudinary_url)

    def optimize_image(self, image_bytes: bytes, width: int = MAX_WIDTH) -> bytes:
        """
        Resize to at most `width` pixels wide and re-encode as WEBP.

        Raises:
            AssetUploadError: bytes are not a readable image
        """
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except Exception as e:
            raise AssetUploadError(f"Unreadable image: {e}") from e

        if img.width > width:
            ratio = width / img.width
            img = img.resize((width, int(img.height * ratio)), Image.Resampling.LANCZOS)

        if img.mode not in ('RGB', 'RGBA'):
            img = img.convert('RGBA' if 'A' in img.getbands() else 'RGB')

        output = BytesIO()
        img.save(output, format='WEBP', quality=WEBP_QUALITY)
        return output.getvalue()

    def upload(self, image_bytes: bytes, key: str) -> str:
        """
        Store an image and return its public URL.

        Args:
            image_bytes: Raw image bytes (any format Pillow reads)
            key: Suggested name, e.g. "posts/1234567890"

        Raises:
            AssetUploadError: store not configured, bad image, or upload failure
        """
        if not self.configured:
            raise AssetUploadError("CLOUDINARY_URL is not configured")

        optimized = self.optimize_image(image_bytes)
        folder, _, name = key.rpartition('/')
        public_id = f"{name or 'image'}-{int(time.time() * 1000)}"

        try:
            result = cloudinary.uploader.upload(
                BytesIO(optimized),
                folder=folder or None,
                public_id=public_id,
                resource_type="image",
                format="webp",
            )
        except Exception as e:
            logger.error(f"[ImageClient] Cloudinary upload failed for {key}: {e}")
            raise AssetUploadError(str(e)) from e

        url = result.get("secure_url") if result else None
        if not url:
            raise AssetUploadError(f"Cloudinary returned no URL for {key}")
        return url

    def rehost(self, source_url: str, key: str) -> Optional[str]:
        """
        Download an image and upload it to our store.

        Returns:
            Hosted URL, or None if any step fails (callers keep the original)
        """
        try:
            response = requests.get(source_url, timeout=HTTP_TIMEOUT_SECONDS)
            response.raise_for_status()
            return self.upload(response.content, key)
        except (requests.RequestException, AssetUploadError) as e:
            logger.warning(f"[ImageClient] Re-hosting failed for {source_url[:80]}: {e}")
            return None
