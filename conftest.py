"""Root conftest.py - make the top-level packages importable under pytest.

The project uses a flat layout (``skills/`` and ``core/`` at the root), so
the root directory is put on ``sys.path`` before any test module imports.
"""

import os
import sys

project_root = os.path.dirname(os.path.abspath(__file__))

# Add project root to sys.path so `core` and `skills` are importable
if project_root not in sys.path:
    sys.path.insert(0, project_root)
