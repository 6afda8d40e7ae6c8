# schemas.py

"""Schema of the plans configuration file."""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from .config import DENSITY_MODE, PERFORMANCE_MODE
from .models import PlanSpec

class ThresholdsConfig(BaseModel):
    """Critical thresholds: CPU in percent, free memory in bytes."""
    model_config = ConfigDict(extra="forbid")

    cpu: Optional[float] = Field(None, ge=0, strict=True)
    memory_free: Optional[float] = Field(None, ge=0, strict=True)

class PlanConfig(BaseModel):
    name: StrictStr
    # true for performance, false for density
    mode: Union[StrictBool, Literal["performance", "density"]]
    pools: List[StrictStr]
    thresholds: Optional[ThresholdsConfig] = None

    def to_spec(self) -> PlanSpec:
        if isinstance(self.mode, bool):
            mode = PERFORMANCE_MODE if self.mode else DENSITY_MODE
        else:
            mode = self.mode

        thresholds = None
        if self.thresholds is not None:
            thresholds = self.thresholds.model_dump(exclude_none=True)

        return PlanSpec(name=self.name, mode=mode, pool_ids=list(self.pools), thresholds=thresholds)

class Configuration(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plans: List[PlanConfig] = Field(..., min_length=1)
