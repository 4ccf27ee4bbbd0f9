"""Training loop, losses, metrics and pipelines for lossless."""
