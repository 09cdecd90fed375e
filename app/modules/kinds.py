"""
Per resource kind schema and extraction rules.

Each kind exported from the allocation API is described by a KindDescriptor; the
pipeline, normalizer and store are generic and read everything kind specific from here.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .config import ALL_KINDS, DEFAULT_LOCAL_COPY_KINDS, DEFAULT_SHARED_COST_KINDS

# Identity derivation strategies understood by the normalizer
IDENTITY_CLUSTER = "cluster"
IDENTITY_NODE = "node"
IDENTITY_POD = "pod"
IDENTITY_NAMESPACE_LABEL = "namespace_label"
IDENTITY_ITEM_NAME = "item_name"

ROLLOUT_IDENTITY_COLUMN = "Rollout"
ROLLOUT_OBJECT_KEY = "Rollout/Rollout.csv"

WINDOW_COLUMNS = ["Window Start", "Window End"]
COST_COLUMNS = [
    "Cpu Cost",
    "Gpu Cost",
    "Ram Cost",
    "PV Cost",
    "Network Cost",
    "LoadBalancer Cost",
]
TOTAL_COLUMNS = ["Total Cost", "Cpu Efficiency", "Ram Efficiency", "Total Efficiency"]


@dataclass(frozen=True)
class KindDescriptor:
    kind: str
    identity_column: str
    identity: str
    has_cluster_columns: bool = True
    has_namespace: bool = False
    has_shared_cost: bool = True
    has_rollout: bool = False
    local_copy: bool = False

    @property
    def aggregate(self) -> str:
        """Value of the aggregate= query parameter"""
        return self.kind

    @property
    def dataset_name(self) -> str:
        return self.identity_column

    @property
    def object_key(self) -> str:
        return f"{self.dataset_name}/{self.dataset_name}.csv"

    @property
    def header(self) -> List[str]:
        return header_for(self)

    @property
    def rollout_header(self) -> Optional[List[str]]:
        if not self.has_rollout:
            return None
        return [ROLLOUT_IDENTITY_COLUMN] + self.header[1:]


def header_for(descriptor: KindDescriptor) -> List[str]:
    header = [descriptor.identity_column]
    if descriptor.has_cluster_columns:
        header += ["ClusterName", "Region"]
    if descriptor.has_namespace:
        header.append("Namespace")
    header += WINDOW_COLUMNS + COST_COLUMNS
    if descriptor.has_shared_cost:
        header.append("Shared Cost")
    return header + TOTAL_COLUMNS


_BASE = {
    "cluster": dict(identity_column="Cluster", identity=IDENTITY_CLUSTER, has_cluster_columns=False),
    "node": dict(identity_column="Node", identity=IDENTITY_NODE),
    "pod": dict(identity_column="Pod", identity=IDENTITY_POD, has_namespace=True),
    "namespace": dict(identity_column="Namespace", identity=IDENTITY_NAMESPACE_LABEL),
    "deployment": dict(identity_column="Deployment", identity=IDENTITY_ITEM_NAME, has_namespace=True),
    "controller": dict(
        identity_column="Controller", identity=IDENTITY_ITEM_NAME, has_namespace=True, has_rollout=True
    ),
    "controllerKind": dict(identity_column="ControllerKind", identity=IDENTITY_ITEM_NAME),
    "service": dict(identity_column="Service", identity=IDENTITY_ITEM_NAME, has_namespace=True),
}


def build_descriptors(
    shared_cost_kinds: Iterable[str] = DEFAULT_SHARED_COST_KINDS,
    local_copy_kinds: Iterable[str] = DEFAULT_LOCAL_COPY_KINDS,
    kinds: Optional[Iterable[str]] = None,
) -> List[KindDescriptor]:
    """
    Build the descriptors of the requested kinds, in export order
    """
    shared_cost_kinds = set(shared_cost_kinds)
    local_copy_kinds = set(local_copy_kinds)
    selected = list(kinds) if kinds is not None else ALL_KINDS
    unknown = [kind for kind in selected if kind not in _BASE]
    if unknown:
        raise KeyError(f"Unknown resource kinds: {', '.join(unknown)}")

    return [
        KindDescriptor(
            kind=kind,
            has_shared_cost=kind in shared_cost_kinds,
            local_copy=kind in local_copy_kinds,
            **_BASE[kind],
        )
        for kind in ALL_KINDS
        if kind in selected
    ]


def descriptors_by_kind(descriptors: Iterable[KindDescriptor]) -> Dict[str, KindDescriptor]:
    return {descriptor.kind: descriptor for descriptor in descriptors}
