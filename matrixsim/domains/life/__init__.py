"""Biospheres, genomes, lineages and the soul ledger."""
