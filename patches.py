"""Compute the JSON patch that grafts namespace scheduling policy onto a pod.

All paths in a patch document are computed against the pod as it was
submitted. Appends to an existing array use the ``/-`` marker and rely on
the API server applying the operations in order.
"""

import json
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from exc import FailedToCreatePatch
from models import (
    NamespaceConfig,
    NodeSelectorTerm,
    Patch,
    PatchAction,
    PodSpec,
    Toleration,
)

LOG = logging.getLogger(__name__)

Dumps = Callable[[Any], bytes]

NODE_SELECTOR_TERMS = (
    "/spec/affinity/nodeAffinity/requiredDuringSchedulingIgnoredDuringExecution"
    "/nodeSelectorTerms"
)


class AffinityPath(StrEnum):
    CREATE_AFFINITY = "/spec/affinity"
    CREATE_NODE_AFFINITY = "/spec/affinity/nodeAffinity"
    ADD_REQUIRED_DURING_SCHEDULING = (
        "/spec/affinity/nodeAffinity/requiredDuringSchedulingIgnoredDuringExecution"
    )
    ADD_NODE_SELECTOR_TERMS = NODE_SELECTOR_TERMS
    ADD_TO_NODE_SELECTOR_TERMS = NODE_SELECTOR_TERMS + "/-"


class TolerationsPath(StrEnum):
    CREATE_TOLERATIONS = "/spec/tolerations"
    ADD_TO_TOLERATIONS = "/spec/tolerations/-"


# Each optional level of the node affinity chain, outermost first, with the
# path that inserts it when it is the first one missing.
AFFINITY_CHAIN = (
    (AffinityPath.CREATE_AFFINITY, "affinity"),
    (AffinityPath.CREATE_NODE_AFFINITY, "nodeAffinity"),
    (
        AffinityPath.ADD_REQUIRED_DURING_SCHEDULING,
        "requiredDuringSchedulingIgnoredDuringExecution",
    ),
    (AffinityPath.ADD_NODE_SELECTOR_TERMS, "nodeSelectorTerms"),
)


def json_dumps(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode()


def affinity_path(spec: PodSpec) -> AffinityPath:
    """Return the path of the shallowest missing level of the node affinity
    chain, or the append path if the nodeSelectorTerms array exists (even if
    it is empty)."""

    node = spec
    for path, field in AFFINITY_CHAIN:
        node = getattr(node, field)
        if node is None:
            return path

    return AffinityPath.ADD_TO_NODE_SELECTOR_TERMS


def tolerations_path(spec: PodSpec) -> TolerationsPath:
    if spec.tolerations is None:
        return TolerationsPath.CREATE_TOLERATIONS
    return TolerationsPath.ADD_TO_TOLERATIONS


def _dump(items):
    return [item.model_dump(mode="json", exclude_none=True) for item in items]


def build_affinity_patch(
    path: AffinityPath, terms: list[NodeSelectorTerm]
) -> list[PatchAction]:
    values = _dump(terms)

    if path == AffinityPath.ADD_TO_NODE_SELECTOR_TERMS:
        return [PatchAction(path=path, value=term) for term in values]

    # Wrap the terms one level at a time, innermost first, until we reach
    # the level the path inserts.
    value = values
    for level, field in reversed(AFFINITY_CHAIN):
        if path == level:
            return [PatchAction(path=path, value=value)]
        value = {field: value}

    raise FailedToCreatePatch(f"invalid patch path: {path}")


def build_tolerations_patch(
    path: TolerationsPath, tolerations: list[Toleration]
) -> list[PatchAction]:
    values = _dump(tolerations)

    if path == TolerationsPath.CREATE_TOLERATIONS:
        return [PatchAction(path=path, value=values)]
    if path == TolerationsPath.ADD_TO_TOLERATIONS:
        return [PatchAction(path=path, value=toleration) for toleration in values]

    raise FailedToCreatePatch(f"invalid patch path: {path}")


def build_patch(
    config: NamespaceConfig, spec: PodSpec | None, dumps: Dumps = json_dumps
) -> bytes:
    """Build and serialize the patch document for a pod spec.

    Node affinity operations come first, followed by toleration operations.
    """

    spec = spec or PodSpec()
    actions = []

    if config.nodeSelectorTerms:
        path = affinity_path(spec)
        LOG.debug("node selector terms patch path: %s", path)
        actions.extend(build_affinity_patch(path, config.nodeSelectorTerms))

    if config.tolerations:
        path = tolerations_path(spec)
        LOG.debug("tolerations patch path: %s", path)
        actions.extend(build_tolerations_patch(path, config.tolerations))

    try:
        return dumps(Patch(actions).model_dump(mode="json"))
    except Exception as err:
        raise FailedToCreatePatch(f"failed to create patch: {err}") from err
