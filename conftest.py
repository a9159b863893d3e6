# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Root conftest.py to ensure the adapter packages are importable from tests."""

import sys
from pathlib import Path

# Add repo root to sys.path so the domus_* packages import without installation
_repo_root = Path(__file__).parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))
