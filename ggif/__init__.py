"""ggif: turn screen recordings into GIFs and share them.

Watches a source folder for new video files, converts each one into an
animated GIF with ffmpeg and gifski, and optionally uploads the result to
Google Cloud Storage or Amazon S3, leaving the public URL on the clipboard.
"""

__version__ = "1.0.0"
__app_name__ = "ggif"
