"""Performance module — reviews and goals."""
