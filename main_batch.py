#!/usr/bin/env python3
"""
SubtleAI Batch Processing Entry Point

Processes every supported media file in a directory, smallest first,
writing subtitles into per-language subfolders under ``Subs/``.
"""

import sys
from subtleai.batch import run_batch_processing

if __name__ == "__main__":
    if sys.version_info < (3, 9):
        sys.stderr.write("SubtleAI requires Python 3.9 or later.\n")
        sys.exit(1)

    run_batch_processing()
