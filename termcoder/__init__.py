"""Plain-language code changes for a local project, applied with backups."""
