"""gitmod: git submodule dependency manager backed by a machine-wide cache."""

import os

# GitPython refuses to import without a git binary; the CLI reports that
# itself through MissingToolError.
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

__version__ = "0.3.0"
