"""Utility modules."""

from repairdesk.utils.normalization import (
    normalize_email,
    normalize_imei,
    normalize_name,
    normalize_phone,
    normalize_serial,
)
from repairdesk.utils.pagination import (
    PaginatedResponse,
    PaginationParams,
    get_pagination,
)
