"""
Command-line entry point for running karlik sessions from a checkout.
"""
import os
import sys

# Add the project root to sys.path to allow for absolute imports
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from karlik.cli import main

if __name__ == "__main__":
    sys.exit(main())
