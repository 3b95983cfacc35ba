"""
Root conftest - makes the top-level packages (core, engines, ui) importable
when running pytest from the project root without installing.
"""
import sys
from pathlib import Path

_root = Path(__file__).resolve().parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))
