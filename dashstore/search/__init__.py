"""dashstore search — filters, sort options, query builder and hit folding."""
