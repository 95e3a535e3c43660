#!/usr/bin/env python3
"""
Cloud SQL Security Manager

- Toggle the SSL requirement of an instance
- Authorize or remove networks (whitelist / blacklist)
- Set a database user's password

This script runs directly from a source checkout by adding the local `src/`
directory to sys.path. For production use, prefer installing the project and
using the provided console script.

Examples:
  python3 main.py --project my-project --instance my-db show
  python3 main.py --project my-project --instance my-db enable-ssl
  python3 main.py --project my-project --instance my-db whitelist office 1.2.3.4/32
  python3 main.py --project my-project --instance my-db set-password app-user
"""

import os
import sys

REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())
