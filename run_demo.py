#!/usr/bin/env python3
"""Serve the setup gate demo app on http://127.0.0.1:8080."""

from setup_gate.demo import main

if __name__ == "__main__":
    main()
