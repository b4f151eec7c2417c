"""Quote requests, contractor assignments and contractor quotes."""
