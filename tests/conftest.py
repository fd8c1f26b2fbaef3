"""
Pytest configuration for lockproxy tests.
"""
import logging
import os
import sys

# Make `import lockproxy` work from a source checkout (src/ on sys.path)
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
_SRC_DIR = os.path.join(_ROOT, 'src')

for _p in (_ROOT, _SRC_DIR):
	if _p not in sys.path:
		sys.path.insert(0, _p)

import pytest


@pytest.fixture(autouse=True)
def _quiet_lockproxy_logs():
	"""Keep expected rejections out of captured output unless a test asks."""
	logger = logging.getLogger("lockproxy")
	previous = logger.level
	logger.setLevel(logging.ERROR)
	yield
	logger.setLevel(previous)
