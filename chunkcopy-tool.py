#!/usr/bin/env python
import sys
import os

# Add the current directory to the path so we can import the chunkcopy package
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from chunkcopy.chunkcopy import cli

if __name__ == '__main__':
    # Ensure the config directory exists for the .env file and logs
    from chunkcopy.chunkcopy_utils import variables
    os.makedirs(variables.LOG_DIR, exist_ok=True)

    cli()
