"""Workshop Honolulu BJJ technique library API."""
