"""voxkit core: configuration, errors, logging and metrics."""
