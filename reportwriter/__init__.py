"""Pageable, sortable HTML reports over SQL result sets."""

__version__ = "1.0.1"
