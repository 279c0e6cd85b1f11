"""Cross-cutting infrastructure: errors, logging, encryption and metrics."""
