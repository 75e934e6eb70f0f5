"""On-disk document storage and schema migrations."""
