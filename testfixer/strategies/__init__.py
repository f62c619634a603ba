from .base import FixStrategy
from .snapshot import SnapshotFixStrategy
from .assertion import AssertionFixStrategy
from .ai import AIFixStrategy

__all__ = ["FixStrategy", "SnapshotFixStrategy", "AssertionFixStrategy", "AIFixStrategy"]
