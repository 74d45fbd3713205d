from __future__ import annotations

import dataclasses
from typing import Optional


@dataclasses.dataclass(frozen=True)
class MatchingConfig:
    # how many nested EFA branch points a search path may take, None for no limit
    max_depth: Optional[int] = None
