# Constants for the perceptual hash matching service

# Storage keys, shared with existing browser-extension data
URL_HASH_CACHE_KEY = "urlHashCache"
BLOCKED_HASHES_KEY = "blockedHashes"
BLOCKED_USERS_KEY = "blockedUsers"
MUTE_ON_BLOCK_KEY = "muteOnBlock"

# Persisted BlockedItem fields
ITEM_HASH_FIELD = "hash"
ITEM_URL_FIELD = "url"
ITEM_TIMESTAMP_FIELD = "timestamp"

# Compute resource message fields
REQUEST_ID_FIELD = "requestId"
SOURCE_URL_FIELD = "sourceUrl"
FINGERPRINT_FIELD = "fingerprint"
ERROR_FIELD = "error"
MESSAGE_TYPE_FIELD = "type"
READY_MESSAGE_TYPE = "ready"

# Fingerprint format
FINGERPRINT_RADIX = 16
PHASH_SIZE = 16  # 16x16 DCT grid -> 256-bit hash, 64 hex symbols

# Error reasons
EMPTY_RESPONSE_REASON = "Empty response from compute resource"
TIMEOUT_REASON = "Fingerprint computation timed out"
RESOURCE_CLOSED_REASON = "Compute resource closed before responding"

# Worker module run as the isolated compute process
WORKER_MODULE = "gifguard.worker"
