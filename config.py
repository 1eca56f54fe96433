"""
Configuration settings for the Porter pixel sorter
"""

import os

# Pixel sorting default parameters
DEFAULT_PROPERTY = "luminance"
DEFAULT_LOWER_THRESHOLD = 0
DEFAULT_UPPER_THRESHOLD = 255
DEFAULT_LUMINANCE_FORMULA = "luma"  # 'luma' (Rec. 709 weights) or 'mean'

# Output naming
OUTPUT_PREFIX = "sorted-"

# Image processing settings
SUPPORTED_FORMATS = [".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".webp"]
RGB_ONLY_EXTENSIONS = [".jpg", ".jpeg"]  # Alpha is dropped when saving to these

# Preview window settings
WINDOW_SIZE = (1024, 1024)
PREVIEW_SIZE = (800, 800)  # Source is downscaled to fit for live preview
PREVIEW_DEBOUNCE_MS = 150

# Recent files
RECENT_FILES_PATH = os.path.expanduser("~/.porter_recent")
MAX_RECENT_FILES = 10
