IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

LAYER_TYPE_TEXT = "TEXT"
LAYER_TYPE_IMAGE = "IMAGE"

DEFAULT_TEXT = "Sample Text"
DEFAULT_TEXT_COLOR = "black"
DEFAULT_FONT_SIZE = 48.0
MIN_FONT_SIZE = 12.0
DEFAULT_OVERLAY_IMAGE = "overlay-circle.png"
DEFAULT_OPACITY = 100.0
DEFAULT_GRAVITY = "northwest"

# Template unit grid -> renderer pixels. Calibrated against the design tool the
# templates were exported from.
UNIT_SCALE_X = 8.0
UNIT_SCALE_Y = 6.0

# Arc-distorted text is rasterised on a temporary canvas of this size.
ARC_CANVAS_SIZE = "800x200"

DEFAULT_OUTPUT_WIDTH = 800
DEFAULT_OUTPUT_HEIGHT = 600
DEFAULT_OUTPUT_FORMAT = "jpg"
OUTPUT_FORMATS = {"jpg", "png"}
CONTENT_TYPES = {"jpg": "image/jpeg", "png": "image/png"}

MAX_OUTPUT_BYTES = 10 * 1024 * 1024
DETAIL_LIMIT = 500

TEMPLATE_CACHE_TTL = 3600.0

KNOWN_TEMPLATES = ("10_light.xml", "11_light.xml", "12_light.xml")
DEFAULT_TEMPLATE = KNOWN_TEMPLATES[0]

SAMPLE_TEMPLATE_DATA: dict[str, str] = {
    "SCHOOL_NICK_NAME": "EAGLES",
    "SCHOOL_NAME": "RIVERSIDE HIGH SCHOOL",
    "SCHOOL_MASCOT": "EAGLES",
    "SCHOOL_YEAR": "1985",
    "SCHOOL_INITIAL": "R",
    "SCHOOL_MASCOT_WITH_ARTICLE": "THE EAGLES",
    "SCHOOL_DARK_COLOR": "#003366",
    "SCHOOL_OTHER_COLOR": "#FFD700",
    "SCHOOL_MASCOT_IMAGE": "overlay-circle.png",
}

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
