# config.py
"""
Application configuration constants for promoframe
"""

# Output surface
CANVAS_SIZE = 600
OVERLAY_BAR_RATIO = 0.1  # Bar thickness as a fraction of the output side

# Transform constraints
MIN_SCALE = 0.1
MAX_SCALE = 2.0
WHEEL_MAX_SCALE = 5.0
MIN_OFFSET = -200.0
MAX_OFFSET = 200.0

# Keyboard nudge steps (plain / with shift)
NUDGE_STEP = 1.0
NUDGE_STEP_LARGE = 10.0
SCALE_STEP = 0.01
SCALE_STEP_LARGE = 0.1
WHEEL_ZOOM_FACTOR = 0.1

# Continuous gestures commit at most one history entry per interval
DRAG_COMMIT_INTERVAL_MS = 100

# Upload validation
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_IMAGE_PIXELS = 40_000_000  # Decoded width * height
SUPPORTED_IMAGE_FORMATS = ['jpeg', 'png', 'webp']
SUPPORTED_MIME_TYPES = ['image/jpeg', 'image/png', 'image/webp']

# Export
EXPORT_QUALITY_DEFAULT = 0.9
EXPORT_FILENAME_PREFIX = "edited-image"

# Saved states
SAVED_STATES_KEY = "image-editor-saved-states"
MAX_SAVED_STATES = 50
MAX_STORAGE_SIZE = 50 * 1024 * 1024  # 50MB of serialized JSON
STATE_IMAGE_MAX_DIMENSION = 2048
STATE_IMAGE_QUALITY = 0.9
STATE_IMAGE_MIN_QUALITY = 0.5
THUMBNAIL_MAX_SIZE = 100
THUMBNAIL_QUALITY = 0.7
STATES_EXPORT_PREFIX = "image-states"

# Preferences
PREFERENCES_KEY = "image-editor-preferences"

# Per-image settings memory
SETTINGS_MEMORY_SIZE = 50
