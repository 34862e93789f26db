import os
import sys
from pathlib import Path

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("CARD_STATE_BACKEND", "memory")
os.environ.setdefault("CARD_USAGE_BACKEND", "memory")
os.environ.pop("CARD_IMAGE_RENDERER_URL", None)
os.environ.pop("CARD_BASE_URL", None)
os.environ.pop("BASE_URL", None)
