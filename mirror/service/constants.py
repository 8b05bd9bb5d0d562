"""
Media format constants.

Centralized definitions of content classes and MIME allow-lists.
"""

CONTENT_CLASS_IMAGE = 'image'
CONTENT_CLASS_FILE = 'file'

CONTENT_CLASSES = [CONTENT_CLASS_IMAGE, CONTENT_CLASS_FILE]

# Images that can be stored as-is
IMAGE_MIME_TYPES = [
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
    'image/bmp',
]

# Recognized image formats that must be converted to PNG before storing
CONVERTIBLE_IMAGE_MIME_TYPES = [
    'image/tiff',
    'image/tif',
]

CONVERSION_TARGET_MIME = 'image/png'

FILE_MIME_TYPES = [
    # PDF
    'application/pdf',
    # Microsoft Office
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    # Text
    'text/plain',
    'text/csv',
    'text/markdown',
    # Archives
    'application/zip',
    'application/x-zip-compressed',
    'application/x-rar-compressed',
    'application/vnd.rar',
    'application/x-7z-compressed',
    # Structured data
    'application/json',
    'application/xml',
    'text/xml',
]

DEFAULT_MIME = 'application/octet-stream'

# Extensions the platform mimetypes database does not always know
EXTRA_MIME_EXTENSIONS = {
    '.md': 'text/markdown',
    '.markdown': 'text/markdown',
    '.webp': 'image/webp',
    '.7z': 'application/x-7z-compressed',
    '.rar': 'application/vnd.rar',
}
