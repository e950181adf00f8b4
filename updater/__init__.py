"""Server updater: track update bundles and per-host install status."""
