"""
Image Validation and Processing Module

Validates uploaded recipe page images before they are stored.
Re-encodes images through PIL to strip potential exploits.
"""

import base64
import binascii
import re
from io import BytesIO

from PIL import Image

from errors import ValidationError


class ImageValidationError(ValidationError):
    """Raised when an image fails validation."""
    pass


# Allowed image formats (PIL format names)
ALLOWED_FORMATS = {'JPEG', 'PNG', 'GIF', 'WEBP'}

# Media types accepted for recipe pages (images go through PIL, PDFs are kept)
PDF_MIME_TYPE = 'application/pdf'

# Maximum image dimensions (prevent decompression bombs)
MAX_WIDTH = 4096
MAX_HEIGHT = 4096

# Maximum decoded file size (20MB)
MAX_FILE_SIZE = 20 * 1024 * 1024

_DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w-]+=[\w.-]+)*;base64,(?P<data>.*)$', re.S)


def decode_payload(value, mime_type=None):
    """
    Decode a base64 string or data URL.

    Returns:
        tuple: (raw bytes, media type)

    Raises:
        ImageValidationError: If the payload is not valid base64 or too large
    """
    if not value or not isinstance(value, str):
        raise ImageValidationError("Empty image payload")

    match = _DATA_URL_RE.match(value.strip())
    if match:
        mime_type = match.group('mime') or mime_type
        value = match.group('data')

    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ImageValidationError("Image payload is not valid base64")

    if len(raw) > MAX_FILE_SIZE:
        raise ImageValidationError(f"Image too large: {len(raw)} bytes (max {MAX_FILE_SIZE})")

    return raw, (mime_type or '').lower()


def validate_and_process_image(image_data, max_width=2048, max_height=2048):
    """
    Validate and re-encode an image to ensure safety.

    Args:
        image_data: Raw image bytes
        max_width: Maximum width to resize to (default 2048)
        max_height: Maximum height to resize to (default 2048)

    Returns:
        bytes: JPEG-encoded image

    Raises:
        ImageValidationError: If the image is invalid or potentially malicious
    """
    image_buffer = BytesIO(image_data)

    try:
        # Open image with PIL (validates format)
        img = Image.open(image_buffer)

        # Verify it's actually an image (detects corrupted/fake files)
        img.verify()

        # Re-open after verify (verify() leaves file in uncertain state)
        image_buffer.seek(0)
        img = Image.open(image_buffer)

        if img.format not in ALLOWED_FORMATS:
            raise ImageValidationError(
                f"Invalid image format: {img.format}. "
                f"Allowed formats: {', '.join(sorted(ALLOWED_FORMATS))}"
            )

        width, height = img.size
        if width > MAX_WIDTH or height > MAX_HEIGHT:
            raise ImageValidationError(
                f"Image dimensions too large: {width}x{height}. "
                f"Maximum: {MAX_WIDTH}x{MAX_HEIGHT}"
            )

        if width > max_width or height > max_height:
            img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)

        # Convert RGBA to RGB for JPEG (remove alpha channel)
        if img.mode in ('RGBA', 'LA', 'P'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'P':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1] if img.mode in ('RGBA', 'LA') else None)
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        output = BytesIO()
        img.save(output, 'JPEG', quality=85, optimize=True)
        return output.getvalue()

    except ImageValidationError:
        raise
    except Image.DecompressionBombError:
        raise ImageValidationError("Image appears to be a decompression bomb (too large when decoded)")
    except Exception as e:
        raise ImageValidationError(f"Invalid or corrupted image: {str(e)}")


def prepare_stored_image(value, mime_type=None):
    """
    Turn a client-supplied page (base64 or data URL) into what we store.

    Images are re-encoded to JPEG; PDFs are kept byte-for-byte once they
    decode and carry the PDF signature.

    Returns:
        tuple: (base64 string, media type)
    """
    raw, mime_type = decode_payload(value, mime_type)

    if mime_type == PDF_MIME_TYPE:
        if not raw.startswith(b'%PDF'):
            raise ImageValidationError("File is not a valid PDF")
        return base64.b64encode(raw).decode('ascii'), PDF_MIME_TYPE

    jpeg = validate_and_process_image(raw)
    return base64.b64encode(jpeg).decode('ascii'), 'image/jpeg'
