"""
Format normalization service.

Detects the real MIME type of a downloaded file, decides whether it can be
stored as-is, and converts recognized-but-unsupported images (TIFF) to PNG
with Pillow.
"""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image

from mirror.errors import ConversionError, ValidationError
from mirror.service.config import (
    get_allowed_mime_types,
    get_convertible_mime_types,
    is_image_conversion_enabled,
)
from mirror.service.constants import (
    CONTENT_CLASS_IMAGE,
    CONVERSION_TARGET_MIME,
    DEFAULT_MIME,
    EXTRA_MIME_EXTENSIONS,
)


class MediaKind(str, Enum):
    SUPPORTED_DIRECT = 'supported_direct'
    CONVERTIBLE_IMAGE = 'convertible_image'
    GENERIC_DOCUMENT = 'generic_document'
    UNSUPPORTED = 'unsupported'


@dataclass
class NormalizedMedia:
    """A file ready for upload"""

    path: Path
    mime_type: str
    kind: MediaKind
    was_converted: bool = False


@dataclass
class UnsupportedMedia:
    """A recognized format that could not be made storable"""

    original_mime: str
    reason: str


def _sniff_image_mime(path):
    try:
        with Image.open(path) as img:
            return Image.MIME.get(img.format)
    except (OSError, ValueError, Image.DecompressionBombError):
        return None


def detect_mime(file_path, header_mime=None):
    """
    Detect the MIME type of a downloaded file.

    Content sniffing wins over the file extension, which wins over the
    response header, so a TIFF served as image/jpeg is still seen as TIFF.

    Args:
        file_path: Path to the downloaded file
        header_mime: Content-Type reported by the server, if any

    Returns:
        str: MIME type, application/octet-stream when nothing matches
    """
    file_path = Path(file_path)

    sniffed = _sniff_image_mime(file_path)
    if sniffed:
        return sniffed

    ext = file_path.suffix.lower()
    if ext in EXTRA_MIME_EXTENSIONS:
        return EXTRA_MIME_EXTENSIONS[ext]
    guessed, _ = mimetypes.guess_type(file_path.name)
    if guessed:
        return guessed

    if header_mime:
        return header_mime.split(';')[0].strip().lower()

    return DEFAULT_MIME


def classify_mime(mime_type, content_class):
    """
    Decide how a MIME type is handled for a content class.

    Returns:
        MediaKind
    """
    if mime_type in get_allowed_mime_types(content_class):
        if content_class == CONTENT_CLASS_IMAGE:
            return MediaKind.SUPPORTED_DIRECT
        return MediaKind.GENERIC_DOCUMENT
    if mime_type in get_convertible_mime_types(content_class):
        return MediaKind.CONVERTIBLE_IMAGE
    return MediaKind.UNSUPPORTED


def _png_path_for(path):
    png_path = path.with_suffix('.png')
    if png_path == path:
        png_path = path.with_name(f'{path.stem}-converted.png')
    return png_path


def convert_to_png(file_path, logger=None):
    """
    Convert an image to PNG next to the original.

    Args:
        file_path: Path to the source image
        logger: Optional callable(str) for logging

    Returns:
        Path: the PNG file (the original is left in place)

    Raises:
        ConversionError: conversion disabled, or Pillow could not read or write the image
    """

    def log(message):
        if logger:
            logger(message)

    if not is_image_conversion_enabled():
        raise ConversionError('Image conversion is disabled')

    file_path = Path(file_path)
    png_path = _png_path_for(file_path)

    log(f'Converting {file_path.name} to PNG')
    try:
        with Image.open(file_path) as img:
            img.load()
            if img.mode not in ('RGB', 'RGBA', 'L', 'LA', 'P'):
                img = img.convert('RGBA')
            img.save(png_path, 'PNG', optimize=True)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        png_path.unlink(missing_ok=True)
        raise ConversionError(f'Failed to convert {file_path.name} to PNG: {e}') from e

    log(f'Converted to {png_path.name} ({png_path.stat().st_size} bytes)')
    return png_path


def normalize(file_path, mime_type, content_class, logger=None):
    """
    Make a downloaded file storable.

    The original is deleted whenever it will not be uploaded: after a
    successful conversion, when conversion fails, and when the type is
    disallowed.

    Args:
        file_path: Path to the downloaded file
        mime_type: Detected MIME type
        content_class: 'image' or 'file'
        logger: Optional callable(str) for logging

    Returns:
        NormalizedMedia or UnsupportedMedia

    Raises:
        ValidationError: the MIME type is neither allowed nor convertible
    """

    def log(message):
        if logger:
            logger(message)

    file_path = Path(file_path)
    kind = classify_mime(mime_type, content_class)

    if kind in (MediaKind.SUPPORTED_DIRECT, MediaKind.GENERIC_DOCUMENT):
        return NormalizedMedia(path=file_path, mime_type=mime_type, kind=kind)

    if kind == MediaKind.CONVERTIBLE_IMAGE:
        try:
            png_path = convert_to_png(file_path, logger=logger)
        except ConversionError as e:
            log(str(e))
            file_path.unlink(missing_ok=True)
            return UnsupportedMedia(original_mime=mime_type, reason=str(e))
        file_path.unlink(missing_ok=True)
        return NormalizedMedia(
            path=png_path, mime_type=CONVERSION_TARGET_MIME, kind=kind, was_converted=True
        )

    if kind == MediaKind.UNSUPPORTED:
        file_path.unlink(missing_ok=True)
        raise ValidationError(f'Invalid {content_class} type: {mime_type}')

    raise ValueError(f'Unhandled media kind: {kind}')
