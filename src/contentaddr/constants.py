"""Constants for contentaddr."""

# Hashing reads the staged blob with a buffer of at most this many bytes
HASH_BUFFER_BYTES = 4 * 1024 * 1024

# Copy polling backoff (seconds)
COPY_POLL_INITIAL_SECONDS = 0.25
COPY_POLL_MAX_SECONDS = 120.0

# Staging blobs are deleted this long after being committed (seconds)
CLEANUP_DELAY_SECONDS = 600.0

# Download URLs become valid this long before "now" (seconds)
DOWNLOAD_CLOCK_SKEW_SECONDS = 300.0

# Fallback name used when a file name cannot be sanitized
DEFAULT_FILENAME = "data"

# Environment variable holding the Azure Storage connection string
AZURE_CONNECTION_STRING_ENV = "AZURE_STORAGE_CONNECTION_STRING"
