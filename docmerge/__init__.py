"""DocMerge: per-record PDF generation from a template and tabular data."""

__version__ = "0.1.0"
