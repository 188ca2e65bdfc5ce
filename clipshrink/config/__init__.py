"""
Configuration Package for clipshrink.

This package centralizes the static configuration settings for the application.
By separating configuration from the application logic, it becomes easier to
manage and modify parameters without changing the core code.

This package includes settings for:
- Common application settings like logging formats, the retry budget and size presets.
- User-overridable paths for external tools like FFmpeg, loaded from YAML.
- Video re-encoding parameters: accepted kinds, codecs, preset and the shrink schedule.
"""
