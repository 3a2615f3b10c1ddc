"""Tree-to-graph builder, layered layout engine and optimistic graph store."""
