"""
Script to upload one data type to the document store

Usage: python scripts/run_upload.py <data_type>
Data types: season, weekly, roster, schedule, all
"""

import sys
import os

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from ingestion.cli import upload_main


if __name__ == "__main__":
    sys.exit(upload_main())
