"""
Utilities Package for clipshrink.

This package contains helper modules that provide common, reusable functionality
across the application. They are not specific to any single pass; they support
tasks such as running external commands, locating the FFmpeg executables and
formatting data for display.

Modules:
    - ffmpeg_utils.py: Runs external commands with logging and deadline support.
    - executables.py: Locates and verifies the FFmpeg and ffprobe executables.
    - format_utils.py: Contains helper functions for formatting data, such as
      converting timedelta objects or file sizes into human-readable strings.
"""
