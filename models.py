import base64
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    RootModel,
    field_validator,
    model_validator,
)


class ApiVersion(StrEnum):
    V1BETA1 = "admission.k8s.io/v1beta1"
    V1 = "admission.k8s.io/v1"


class PatchType(StrEnum):
    JSONPatch = "JSONPatch"


class PatchOp(StrEnum):
    ADD = "add"


class PatchAction(BaseModel):
    op: PatchOp = PatchOp.ADD
    path: str
    value: Any


# https://jsonpatch.com/
Patch = RootModel[list[PatchAction]]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#nodeselectorrequirement-v1-core
class NodeSelectorRequirement(BaseModel):
    key: str
    operator: str
    values: list[str] | None = None


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#nodeselectorterm-v1-core
class NodeSelectorTerm(BaseModel):
    matchExpressions: list[NodeSelectorRequirement] | None = None
    matchFields: list[NodeSelectorRequirement] | None = None


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#toleration-v1-core
class Toleration(BaseModel):
    key: str | None = None
    operator: str | None = None
    value: str | None = None
    effect: str | None = None
    tolerationSeconds: int | None = None


class NodeSelector(BaseModel):
    nodeSelectorTerms: list[NodeSelectorTerm] | None = None


class NodeAffinity(BaseModel):
    requiredDuringSchedulingIgnoredDuringExecution: NodeSelector | None = None


class Affinity(BaseModel):
    nodeAffinity: NodeAffinity | None = None


class PodSpec(BaseModel):
    affinity: Affinity | None = None
    tolerations: list[Toleration] | None = None


class Metadata(BaseModel):
    labels: dict[str, str] | None = None


class Pod(BaseModel):
    metadata: Metadata | None = None
    spec: PodSpec | None = None


class NamespaceConfig(BaseModel):
    """Scheduling policy applied to every pod created in a namespace."""

    nodeSelectorTerms: list[NodeSelectorTerm] | None = None
    tolerations: list[Toleration] | None = None
    excludedLabels: dict[str, str] | None = None

    @model_validator(mode="after")
    def validate_model(self):
        if not (self.nodeSelectorTerms or self.tolerations):
            raise ValueError(
                "at least one of nodeSelectorTerms or tolerations needs to be specified"
            )

        return self


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#status-v1-meta
class Status(BaseModel):
    status: str | None = None
    message: str | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionResponse
class AdmissionResponse(BaseModel):
    uid: str
    allowed: bool
    patchType: PatchType | None = None
    patch: str | None = None
    auditAnnotations: dict[str, str] | None = None
    result: Status | None = None

    @field_validator("patch", mode="before")
    @classmethod
    def validate_patch(cls, val):
        if isinstance(val, bytes):
            val = val.decode()
        if isinstance(val, str):
            # Make sure the base64 string contains valid data.
            Patch.model_validate_json(base64.b64decode(val))
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if self.patch and not self.patchType:
            raise ValueError("missing patchType field")
        if self.patchType and not self.patch:
            raise ValueError(f"patchType is {self.patchType} but there is no patch")

        return self


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionRequest
class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: str = ""
    namespace: str | None = None
    object: Any = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionReview
class AdmissionReview(BaseModel):
    model_config = ConfigDict(extra="allow")

    apiVersion: str = ApiVersion.V1BETA1
    kind: str = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None
