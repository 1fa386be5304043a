BADGE_TYPE = "barbaros-client"

# QR rendering defaults
QR_ERROR_CORRECTION = "H"
QR_MARGIN = 2  # modules
QR_WIDTH = 300  # pixels
QR_DARK_COLOR = "#000000"
QR_LIGHT_COLOR = "#ffffff"

# Scanning
SCAN_INTERVAL_MS = 300
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MIN_FALLBACK_ID_LENGTH = 5
CAMERA_FRAME_WIDTH = 640
CAMERA_FRAME_HEIGHT = 480
MAX_CAMERA_INDEXES = 5  # indexes to try when the OS gives no device list
REAR_CAMERA_HINTS = ("back", "rear", "environment")

# Loyalty
VISITS_PER_REWARD = 10

DEFAULT_PAGE_SIZE = 10
ADMIN_ROLES = ("owner", "barber", "receptionist")
