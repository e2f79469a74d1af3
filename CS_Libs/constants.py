"""
Constants and configuration values for Canvas Studio.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the editing engines.
"""

# Version constants
ORIGINAL_VERSION_NUM = 0
SCHEMA_VERSION = 1

# Overlay defaults (fractions of the reference image)
DEFAULT_OVERLAY_CENTER = (0.5, 0.5)
DEFAULT_IMAGE_OVERLAY_SIZE = (0.2, 0.2)
DEFAULT_TEXT_OVERLAY_SIZE = (0.4, 0.12)
MIN_OVERLAY_SIZE = 0.05
MAX_OVERLAY_SIZE = 0.8

# Text overlays
FONT_POINTS_SCALE = 400
MIN_FONT_POINTS = 8
MAX_FONT_POINTS = 72
DEFAULT_FONT_POINTS = 16
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_TEXT = "Text"
FONT_OPTIONS = [
    "Arial",
    "Helvetica",
    "Verdana",
    "Tahoma",
    "Georgia",
    "Times New Roman",
    "Impact",
    "Comic Sans MS",
    "Courier New",
]
FONT_SIZE_PRESETS = [12, 14, 16, 18, 24]
FALLBACK_FONT_FILES = ["DejaVuSans-Bold.ttf", "DejaVuSans.ttf", "LiberationSans-Bold.ttf"]

# Overlay handles (screen pixels)
HANDLE_HIT_RADIUS = 10.0

# Paint brushes
MIN_BRUSH_SIZE = 4
MAX_BRUSH_SIZE = 80
DEFAULT_BRUSH_SIZE = 24
MIN_DAB_RADIUS = 2
STROKE_STEP_PX = 2
MIN_HIGHLIGHT_OPACITY = 0.1
MAX_HIGHLIGHT_OPACITY = 1.0
DEFAULT_HIGHLIGHT_OPACITY = 0.5
DEFAULT_COLORIZE_COLOR = "#ff0000"
DEFAULT_HIGHLIGHT_COLOR = "#ffff00"
MASK_ALPHA_THRESHOLD = 10

# Crop / rotate preview
VALID_ROTATIONS = (0, 90, 180, 270)
CROP_PREVIEW_MAX_WIDTH = 800
CROP_PREVIEW_MAX_HEIGHT = 500

# Output encoding
OUTPUT_FORMAT = "PNG"
OUTPUT_CONTENT_TYPE = "image/png"

# Supported media
IMAGE_MIME_PREFIX = "image/"
SUPPORTED_VIDEO_MIME_TYPES = {"video/mp4", "video/webm", "video/quicktime"}
MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}
DEFAULT_BLOB_EXTENSION = ".bin"

# Local storage layout
STORAGE_DIR_NAME = "StudioAssets"
ASSET_INDEX_FILE = "asset.json"
BLOBS_DIR_NAME = "blobs"
LIBRARY_DIR_NAME = "_library"
LOCAL_URL_SCHEME = "studio://"

# Asset index field names
FIELD_SCHEMA_VERSION = "schema_version"
FIELD_ASSET_ID = "asset_id"
FIELD_KIND = "kind"
FIELD_SOURCE_URL = "source_url"
FIELD_MIME_TYPE = "mime_type"
FIELD_CREATED_AT = "created_at"
FIELD_NEXT_VERSION = "next_version"
FIELD_VERSIONS = "versions"
FIELD_VERSION_NUM = "version_num"
FIELD_URL = "url"
FIELD_METADATA = "metadata"

# Storage refresh / AI polling
VERSION_REFRESH_ATTEMPTS = 2
AI_POLL_INTERVAL_SECONDS = 2.0
AI_POLL_TIMEOUT_SECONDS = 300.0

# Settings file
SETTINGS_FILE_NAME = "studio_settings.json"

# UI constants
DEFAULT_WINDOW_WIDTH = 1400
DEFAULT_WINDOW_HEIGHT = 850
