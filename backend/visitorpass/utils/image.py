from PIL import Image, UnidentifiedImageError
import io
import logging

logger = logging.getLogger(__name__)

def validate_image(image_bytes: bytes, max_size_mb: int = 10) -> tuple:
    """
    Validate an uploaded QR photo or screenshot
    Returns (is_valid, error_message)
    """
    if not image_bytes:
        return False, "Empty image file"

    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > max_size_mb:
        return False, f"Image too large: {size_mb:.2f}MB (max {max_size_mb}MB)"

    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.verify()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Image validation error: {e}")
        return False, "Invalid image format"

    if image.format not in ['JPEG', 'JPG', 'PNG']:
        return False, f"Unsupported format: {image.format}"

    # A QR code needs at least ~21 modules across to be readable
    if image.width < 21 or image.height < 21:
        return False, f"Image too small: {image.width}x{image.height}"

    return True, None
