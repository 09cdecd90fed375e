from pydantic import BaseModel, Field, StrictFloat, StrictStr
from typing import Optional, List, Dict, Any


class AllocationWindow(BaseModel):
    """Time window of an allocation, kept as the opaque ISO-8601 strings the API returns"""
    start: StrictStr
    end: StrictStr


class AllocationItem(BaseModel):
    """Cost and efficiency figures of one aggregated entity"""
    name: StrictStr
    properties: Dict[str, Any]
    window: AllocationWindow
    cpu_cost: StrictFloat = Field(alias="cpuCost")
    gpu_cost: StrictFloat = Field(alias="gpuCost")
    ram_cost: StrictFloat = Field(alias="ramCost")
    pv_cost: StrictFloat = Field(alias="pvCost")
    network_cost: StrictFloat = Field(alias="networkCost")
    load_balancer_cost: StrictFloat = Field(alias="loadBalancerCost")
    shared_cost: Optional[StrictFloat] = Field(default=None, alias="sharedCost")
    total_cost: StrictFloat = Field(alias="totalCost")
    cpu_efficiency: StrictFloat = Field(alias="cpuEfficiency")
    ram_efficiency: StrictFloat = Field(alias="ramEfficiency")
    total_efficiency: StrictFloat = Field(alias="totalEfficiency")


class AllocationResponse(BaseModel):
    """Decoded /model/allocation payload; a null bucket means no data for the window"""
    code: Optional[Any] = None
    data: List[Optional[Dict[str, Any]]]


class PipelineResult(BaseModel):
    """Outcome of one resource-kind export"""
    kind: str
    success: bool
    stage: Optional[str] = None
    error: Optional[str] = None
    rows: Dict[str, int] = Field(default_factory=dict)
    duration_ms: float = 0.0
