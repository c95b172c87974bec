import os
import sys
from pathlib import Path

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SCENE_EXPORT_PROJECT_NAME", "TestProject")
os.environ.setdefault("SCENE_EXPORT_BASE_SCENE_CLASS", "Scene")
os.environ.setdefault("SCENE_EXPORT_FAIL_ON_ERROR", "0")
