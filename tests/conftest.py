import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

path_str = str(ROOT)
if path_str not in sys.path:
    sys.path.insert(0, path_str)
