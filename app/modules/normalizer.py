import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import MalformedRecordError
from .kinds import (
    KindDescriptor,
    IDENTITY_CLUSTER,
    IDENTITY_NODE,
    IDENTITY_POD,
    IDENTITY_NAMESPACE_LABEL,
    IDENTITY_ITEM_NAME,
)
from .models import AllocationItem, AllocationResponse

logger = logging.getLogger(__name__)

UNALLOCATED = "__unallocated__"
IDLE = "__idle__"

# Placeholder cluster id reported by the upstream sample deployment
PLACEHOLDER_CLUSTER = "cluster-one"

REGION_LABEL = "topology_kubernetes_io_region"
NAMESPACE_LABEL = "kubernetes_io_metadata_name"

ROLLOUT_PREFIX = "rollout:"
# Pod template hash appended to rollout controller names
ROLLOUT_HASH_SUFFIX = re.compile(r"-[a-f0-9]{10}$")

Row = List[str]


@dataclass
class NormalizedRows:
    rows: List[Row] = field(default_factory=list)
    rollout_rows: List[Row] = field(default_factory=list)


def optional_str(mapping: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    """Value under key if it is a string, None when absent or of another type"""
    if mapping is None:
        return None
    value = mapping.get(key)
    return value if isinstance(value, str) else None


def optional_mapping(mapping: Optional[Dict[str, Any]], key: str) -> Optional[Dict[str, Any]]:
    """Value under key if it is a mapping, None when absent or of another type"""
    if mapping is None:
        return None
    value = mapping.get(key)
    return value if isinstance(value, dict) else None


def required_str(mapping: Dict[str, Any], key: str, kind: str, item_name: str) -> str:
    value = mapping.get(key)
    if not isinstance(value, str):
        raise MalformedRecordError(
            f"Item {item_name!r} has no string field properties.{key} (got {type(value).__name__})",
            kind=kind,
        )
    return value


def format_float(value: float) -> str:
    return "%f" % value


def rollout_name(controller_name: str) -> Optional[str]:
    """
    Logical rollout name for a "rollout:" controller, None for any other controller
    """
    if not controller_name.startswith(ROLLOUT_PREFIX):
        return None
    return ROLLOUT_HASH_SUFFIX.sub("", controller_name[len(ROLLOUT_PREFIX):])


def _identity(item: AllocationItem, descriptor: KindDescriptor, cluster_name: str, is_idle: bool) -> str:
    properties = item.properties
    strategy = descriptor.identity

    if strategy == IDENTITY_CLUSTER:
        cluster = required_str(properties, "cluster", descriptor.kind, item.name)
        return cluster_name if cluster == PLACEHOLDER_CLUSTER else cluster

    if strategy in (IDENTITY_NODE, IDENTITY_POD):
        # Idle allocations are not attached to a node or pod
        if is_idle and optional_str(properties, strategy) is None:
            return item.name
        return required_str(properties, strategy, descriptor.kind, item.name)

    if strategy == IDENTITY_NAMESPACE_LABEL:
        if is_idle:
            return ""
        return optional_str(optional_mapping(properties, "labels"), NAMESPACE_LABEL) or ""

    if strategy == IDENTITY_ITEM_NAME:
        return item.name

    raise ValueError(f"Unknown identity strategy {strategy!r}")


def _region(properties: Dict[str, Any], is_idle: bool) -> str:
    if is_idle:
        return ""
    return optional_str(optional_mapping(properties, "labels"), REGION_LABEL) or ""


def _namespace(properties: Dict[str, Any], is_idle: bool) -> str:
    namespace = optional_str(properties, "namespace")
    if namespace is not None:
        return namespace
    if is_idle:
        return ""
    for labels_key in ("namespaceLabels", "labels"):
        namespace = optional_str(optional_mapping(properties, labels_key), NAMESPACE_LABEL)
        if namespace is not None:
            return namespace
    return ""


def build_row(item: AllocationItem, descriptor: KindDescriptor, cluster_name: str) -> Row:
    """
    Project one allocation item onto the kind's CSV columns
    """
    is_idle = item.name == IDLE
    row = [_identity(item, descriptor, cluster_name, is_idle)]

    if descriptor.has_cluster_columns:
        row += [cluster_name, _region(item.properties, is_idle)]
    if descriptor.has_namespace:
        row.append(_namespace(item.properties, is_idle))

    row += [item.window.start, item.window.end]
    row += [
        format_float(item.cpu_cost),
        format_float(item.gpu_cost),
        format_float(item.ram_cost),
        format_float(item.pv_cost),
        format_float(item.network_cost),
        format_float(item.load_balancer_cost),
    ]
    if descriptor.has_shared_cost:
        if item.shared_cost is None:
            raise MalformedRecordError(f"Item {item.name!r} has no sharedCost", kind=descriptor.kind)
        row.append(format_float(item.shared_cost))
    row += [
        format_float(item.total_cost),
        format_float(item.cpu_efficiency * 100),
        format_float(item.ram_efficiency * 100),
        format_float(item.total_efficiency * 100),
    ]
    return row


def parse_item(raw: Any, key: str, kind: str) -> Optional[AllocationItem]:
    """
    Validate one raw item; None for entries that are never persisted
    """
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"Item {key!r} is not an object", kind=kind)

    name = raw.get("name")
    if not isinstance(name, str):
        raise MalformedRecordError(f"Item {key!r} has no string name", kind=kind)
    if name == UNALLOCATED:
        return None

    try:
        return AllocationItem.model_validate(raw)
    except ValidationError as e:
        raise MalformedRecordError(f"Item {name!r} is malformed: {e}", kind=kind)


def normalize(response: AllocationResponse, descriptor: KindDescriptor, cluster_name: str) -> NormalizedRows:
    """
    Flatten every allocation bucket into rows for the kind's dataset (and its rollout dataset)
    """
    result = NormalizedRows()

    for bucket in response.data:
        if bucket is None:
            logger.info(f"No Data for {descriptor.dataset_name}")
            continue

        for key, raw in bucket.items():
            item = parse_item(raw, key, descriptor.kind)
            if item is None:
                continue

            row = build_row(item, descriptor, cluster_name)
            result.rows.append(row)

            if descriptor.has_rollout:
                rollout = rollout_name(item.name)
                if rollout is not None:
                    result.rollout_rows.append([rollout] + row[1:])

    logger.info(
        f"Normalized {len(result.rows)} {descriptor.dataset_name} rows"
        + (f" and {len(result.rollout_rows)} Rollout rows" if descriptor.has_rollout else "")
    )
    return result
