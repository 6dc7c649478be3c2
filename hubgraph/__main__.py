"""
Entry point for running HubGraph as a module.

Usage:
    python -m hubgraph [--port PORT] [--pages N] [--delay SECONDS] [--token TOKEN]
"""

from hubgraph.app import main

if __name__ == "__main__":
    main()
