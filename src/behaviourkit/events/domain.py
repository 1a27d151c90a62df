from __future__ import annotations

BEHAVIOURS_APPLIED = "behaviours-applied"
INSTANCE_REMOVED = "instance-removed"
