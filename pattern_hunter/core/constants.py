"""Application-wide constants."""

APP_NAME = "pattern-hunter"
VERSION = "1.0.0"

SUPPORTED_IMAGE_FORMATS = (".png", ".jpg", ".jpeg", ".gif", ".bmp")

# Canonical colors as RGBA tuples
ON_RGBA = (0, 0, 0, 255)
OFF_RGBA = (255, 255, 255, 255)

# Cell codes used by compiled patterns and encoded candidates
CELL_OFF = 0
CELL_ON = 1
CELL_OTHER = 2

WORKER_SUCCESS_EXIT_CODE = 0

SELF_TEST_PAYLOAD = "self_test_mock_pattern_main_thread"
