"""Constants used across chatview modules."""

import os

# Vendor installation layout
INSTALL_MARKER = "WeChat.exe"
SECRET_FILENAME = "DBPass.Bin"

# Archive format: 16-byte IV || AES-256-CBC ciphertext (PKCS7 padded)
IV_LENGTH = 16
KEY_LENGTH = 32             # AES-256
BLOCK_SIZE_BITS = 128

# Local state
DEFAULT_DATA_DIR = os.path.expanduser("~/.chatview")
DEFAULT_EXPORT_DIR = os.path.join(os.path.expanduser("~/Downloads"), "chatview-tools")
DECRYPTED_DB_NAME = "decrypted.db"
LOG_DIR_NAME = "logs"
LOG_FILE_NAME = "app.log"
FILES_DIR_NAME = "files"

# Result cache
DEFAULT_CACHE_TTL = 5 * 60  # seconds

# Query limits
SEARCH_LIMIT = 100
HISTORY_EXPORT_LIMIT = 1000
STATS_DAYS = 30
STATS_TOP_TALKERS = 10
DEFAULT_PAGE_SIZE = 50

# Export formats
EXPORT_FORMATS = ("json", "csv", "txt", "html")
CSV_HEADERS = ("time", "sender", "type", "content")
