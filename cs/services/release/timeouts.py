from __future__ import annotations

# Host API requests
HTTP_TIMEOUT_SECONDS = 30.0

# Primary backend rate limits: attempts after the first rejected one
RATE_LIMIT_RETRIES = 2
SECONDARY_RATE_LIMIT_DEFAULT_SECONDS = 60.0

# Alternate backend list endpoints (pulls, releases): page size and page cap
LIST_PAGE_SIZE = 50
LIST_MAX_PAGES = 20
