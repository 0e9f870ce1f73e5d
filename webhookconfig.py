"""Bootstrap the webhook: generate its certificates and create or update the
MutatingWebhookConfiguration that sends pod creation requests to it.

If the configuration already exists it is replaced with a freshly built one,
which in practice only changes the CA bundle.
"""

import base64
import logging
import os

from openshift.dynamic.exceptions import ConflictError

from certs import generate_certificates, write_file
from providers import KubernetesProvider

LOG = logging.getLogger(__name__)

WEBHOOK_PATH = "/mutate"
NAMESPACE_SELECTOR = {"namespace-node-affinity": "enabled"}


def mutating_webhook_config(
    ca_bundle: bytes, namespace: str, name: str, service_name: str
) -> dict:
    return {
        "apiVersion": "admissionregistration.k8s.io/v1",
        "kind": "MutatingWebhookConfiguration",
        "metadata": {"name": name},
        "webhooks": [
            {
                "name": f"{service_name}.{namespace}.svc",
                "sideEffects": "None",
                "admissionReviewVersions": ["v1", "v1beta1"],
                "clientConfig": {
                    "caBundle": base64.b64encode(ca_bundle).decode(),
                    "service": {
                        "name": service_name,
                        "namespace": namespace,
                        "path": WEBHOOK_PATH,
                    },
                },
                "rules": [
                    {
                        "operations": ["CREATE"],
                        "apiGroups": [""],
                        "apiVersions": ["v1"],
                        "resources": ["pods"],
                    }
                ],
                "failurePolicy": "Ignore",
                "namespaceSelector": {"matchLabels": dict(NAMESPACE_SELECTOR)},
            }
        ],
    }


def create_or_update_mutating_webhook_config(
    resource, ca_bundle: bytes, namespace: str, name: str, service_name: str
):
    body = mutating_webhook_config(ca_bundle, namespace, name, service_name)

    try:
        return resource.create(body=body)
    except ConflictError:
        LOG.info("MutatingWebhookConfiguration %s exists, updating", name)

    # The metadata.resourceVersion needs to be specified for an update
    existing = resource.get(name=name)
    body["metadata"]["resourceVersion"] = existing.metadata.resourceVersion
    return resource.replace(body=body)


def main():
    logging.basicConfig(level=logging.INFO)

    namespace = os.environ.get("NAMESPACE", "namespace-node-affinity")
    service_name = os.environ.get("SERVICE_NAME", "namespace-node-affinity")
    name = os.environ.get("WEBHOOK_CONFIG_NAME", "namespace-node-affinity")
    cert_file = os.environ.get("CERT_FILE", "/etc/webhook/certs/tls.crt")
    key_file = os.environ.get("KEY_FILE", "/etc/webhook/certs/tls.key")
    ca_bundle_path = os.environ.get("CA_BUNDLE")

    # With an externally provided CA the serving certificate is expected to
    # be provided alongside it.
    if ca_bundle_path:
        with open(ca_bundle_path, "rb") as fd:
            ca_bundle = fd.read()
        server_cert = server_key = None
    else:
        ca_bundle, server_cert, server_key = generate_certificates(
            service_name, namespace
        )

    provider = KubernetesProvider()
    create_or_update_mutating_webhook_config(
        provider.mutating_webhook_configurations,
        ca_bundle,
        namespace,
        name,
        service_name,
    )
    LOG.info("MutatingWebhookConfiguration %s is up to date", name)

    if server_cert is not None:
        write_file(cert_file, server_cert)
        write_file(key_file, server_key)


if __name__ == "__main__":
    main()
