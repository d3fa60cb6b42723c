"""Constants for multipart uploads, listing pagination and progress bars."""

PACKAGE_ROOT = "upyun_transfer"

DEFAULT_ENDPOINT = "v0.api.upyun.com"

# Base unit and default size of a multipart upload part
DEFAULT_PART_SIZE = 1024 * 1024  # 1 MiB

# Maximum number of parts for multipart upload
MAX_PART_NUM = 10000

# Sources smaller than this are uploaded with a single PUT
MIN_RESUME_PUT_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

# Listing retries and page sizes
MAX_LIST_TRIES = 5
LIST_RETRY_DELAY = 0.01  # seconds
MAX_LIMIT = 4096
DEFAULT_LIMIT = 256
TRAVERSAL_PAGE_SIZE = 50

# Cursor returned by the listing API once a directory has no further pages
LIST_END_ITER = "g2gCZAAEbmV4dGQAA2VvZg"

# Chunk size used when hashing or streaming data
STREAMING_CHUNK_SIZE = 64 * 1024  # 64 KiB

TQDM_BAR_FORMAT = "{desc} ▕{bar:50}▏ {n_fmt:>10}/{total_fmt:<10} ({rate_fmt:>12}, ETA: {remaining:>6}) {postfix}"
TQDM_DEFAULTS = {
    "bar_format": TQDM_BAR_FORMAT,
    "unit": "iB",
    "unit_scale": True,
    "miniters": 1,
    "smoothing": 0.00001,
    "colour": "cyan",
    "ascii": "░▒█",
}
