"""Service layer: resolver cache, tile translation and health probes."""
