"""
Pytest configuration for MDB bridge tests.
"""

import sys
from pathlib import Path

# Add the repository root to the path for imports
repo_root = Path(__file__).parent.parent.parent.parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))
