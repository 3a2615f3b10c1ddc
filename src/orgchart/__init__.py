"""orgchart: company hierarchy graph builder, layout engine and optimistic graph store."""

__version__ = "0.1.0"
