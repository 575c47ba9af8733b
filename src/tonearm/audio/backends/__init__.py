"""Hardware audio output backends."""
