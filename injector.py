import base64
import logging

import pydantic

from exc import (
    ApplicationError,
    InvalidAdmissionReview,
    InvalidAdmissionReviewObject,
)
from models import (
    AdmissionResponse,
    AdmissionReview,
    NamespaceConfig,
    PatchType,
    Pod,
    Status,
)
from patches import Dumps, build_patch, json_dumps
from policy import PolicySource

LOG = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
SUCCESS_STATUS = "Success"
ANNOTATION_KEY = "namespace-node-affinity.idgenchev.github.com/applied-patch"


def ignore_pod_with_labels(labels: dict[str, str] | None, config: NamespaceConfig) -> bool:
    """A pod is ignored only if it carries every one of the excluded labels
    with the same value."""

    if not config.excludedLabels:
        return False

    labels = labels or {}
    return all(
        key in labels and labels[key] == value
        for key, value in config.excludedLabels.items()
    )


class Injector:
    """Injects the node affinity and tolerations configured for a namespace
    into the pods in AdmissionReview requests."""

    def __init__(
        self,
        policy: PolicySource,
        dumps: Dumps = json_dumps,
        annotation_key: str = ANNOTATION_KEY,
    ):
        self.policy = policy
        self.dumps = dumps
        self.annotation_key = annotation_key

    def mutate(self, body: bytes) -> bytes | None:
        """Return the AdmissionReview in body with its response set.

        Returns None for a review that carries no request, and body itself if
        the pod is excluded by the namespace configuration.
        """

        LOG.info("Received AdmissionReview: %s", body)

        try:
            review = AdmissionReview.model_validate_json(body)
        except pydantic.ValidationError as err:
            raise InvalidAdmissionReview(f"invalid admission review: {err}") from err

        req = review.request
        if req is None:
            LOG.warning("admissionReview with empty request")
            return None

        try:
            pod = Pod.model_validate(req.object)
        except pydantic.ValidationError as err:
            raise InvalidAdmissionReviewObject(
                f"invalid admission review object: {err}"
            ) from err

        namespace = req.namespace or DEFAULT_NAMESPACE
        config = self.policy.namespace_config(namespace)

        labels = pod.metadata.labels if pod.metadata else None
        if ignore_pod_with_labels(labels, config):
            LOG.info(
                "Ignoring pod with labels: %s in namespace: %s", labels, namespace
            )
            return body

        patch = build_patch(config, pod.spec, self.dumps)

        review.response = AdmissionResponse(
            uid=req.uid,
            allowed=True,
            patchType=PatchType.JSONPatch,
            patch=base64.b64encode(patch),
            auditAnnotations={self.annotation_key: patch.decode()},
            result=Status(status=SUCCESS_STATUS),
        )

        try:
            response_body = self.dumps(review.model_dump(mode="json", exclude_none=True))
        except Exception as err:
            raise ApplicationError(f"failed to serialize admission review: {err}") from err

        LOG.info("AdmissionReview response: %s", response_body)

        return response_body
