import base64
from io import BytesIO

from PIL import Image, UnidentifiedImageError

MAX_IMAGE_BYTES = 10 * 1024 * 1024


class InvalidImageError(ValueError):
    pass


def to_data_url(contents: bytes) -> str:
    """
    Checks that an upload is a readable image and returns it as a base64
    data URL, the form photos and frames are stored in.
    """
    if not contents:
        raise InvalidImageError("Empty image")
    if len(contents) > MAX_IMAGE_BYTES:
        raise InvalidImageError("Image too large")
    try:
        with Image.open(BytesIO(contents)) as img:
            img.verify()
            fmt = (img.format or "png").lower()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImageError("Invalid image") from e

    mime = "image/jpeg" if fmt in ("jpeg", "jpg") else f"image/{fmt}"
    return f"data:{mime};base64,{base64.b64encode(contents).decode('ascii')}"
