"""Body normalization and field extractors shared by every extraction path."""
