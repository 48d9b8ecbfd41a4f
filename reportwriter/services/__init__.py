"""Report paging, sorting and data-access services."""
