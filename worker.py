#!/usr/bin/env python3
"""
Root-level worker entry point for Render deployment.

Render's Python services run from the repo root; this forwards to the
package entry point.
"""

from newsdesk.worker import main

if __name__ == '__main__':
    main()
