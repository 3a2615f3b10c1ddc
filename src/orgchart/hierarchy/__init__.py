"""Server-owned hierarchy records (tree form)."""
