"""
ChunkCopy Column Naming

Translation from source column names to target column names.
"""

import re

EXTERNAL_ID_COLUMN = "id__c"
SOURCE_ID_COLUMN = "sfid"
CUSTOM_SUFFIX = "__c"

# a double underscore that does not open the custom suffix, e.g. ns__field -> ns_field
_NAMESPACE_SEPARATOR = re.compile(r'(.)__([^c].)', re.IGNORECASE)


def get_external_id_column_name() -> str:
    """Target column used as the idempotency key for upserts."""
    return EXTERNAL_ID_COLUMN


def to_target_column_name(column_name: str) -> str:
    """Translate a source column name into its custom-field form on the target."""
    if column_name == SOURCE_ID_COLUMN:
        return get_external_id_column_name()

    column_name = _NAMESPACE_SEPARATOR.sub(r'\1_\2', column_name)

    if column_name.find(CUSTOM_SUFFIX) > 0:
        return column_name
    return column_name + CUSTOM_SUFFIX


def identity_column_name(column_name: str) -> str:
    return column_name
