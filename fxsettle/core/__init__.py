"""Settlement core: typed data, signing, operation selection, assembly and workflow."""
