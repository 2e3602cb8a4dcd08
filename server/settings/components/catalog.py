"""File catalog settings."""

from server.settings.components import config

# Label of the synthetic root breadcrumb
CATALOG_ROOT_LABEL = config('CATALOG_ROOT_LABEL', default='Home')

# Initial sort of folder listings
CATALOG_DEFAULT_SORT_FIELD = config(
    'CATALOG_DEFAULT_SORT_FIELD',
    default='name',
)
CATALOG_DEFAULT_SORT_DIRECTION = config(
    'CATALOG_DEFAULT_SORT_DIRECTION',
    default='asc',
)

# Storage limit given to users without an explicit quota (10 GiB)
CATALOG_DEFAULT_QUOTA_BYTES = config(
    'CATALOG_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=10 * 1024 * 1024 * 1024,
)
