import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from swarmlab.sim.core.config import load_config  # noqa: E402


@pytest.fixture
def single_state_config():
    """Factory for a one-species, one-state scenario with unit drag and friction."""

    def build(behaviors=(), **overrides):
        raw = {
            "id": "single",
            "world_width": 800,
            "world_height": 600,
            "initial_count": 0,
            "max_count": 10,
            "species": [
                {
                    "id": "solo",
                    "initial_state": "only",
                    "max_speed": 50,
                    "sense_radius": 50,
                    "states": {
                        "only": {
                            "radius": 5,
                            "physics": {"drag": 1.0, "friction": 1.0},
                            "behaviors": list(behaviors),
                        }
                    },
                }
            ],
        }
        raw.update(overrides)
        return load_config(raw)

    return build
