import base64
import json

import pytest

import mutate
from exc import ProviderError


CONTROL_NAMESPACE = "ns-node-affinity"
CONFIG_MAP_NAME = "test-cm"

NODE_SELECTOR_TERMS = [
    {
        "matchExpressions": [
            {"key": "key", "operator": "In", "values": ["val"]},
        ]
    }
]

TOLERATIONS = [
    {
        "key": "example-key",
        "operator": "Exists",
        "value": "example-value",
        "effect": "NoSchedule",
    },
    {
        "key": "example-key-b",
        "operator": "Exists",
        "value": "example-value-b",
        "effect": "PreferNoSchedule",
    },
]

CONFIG_MAPS = {
    (CONTROL_NAMESPACE, CONFIG_MAP_NAME): {
        "testing-ns": json.dumps(
            {
                "nodeSelectorTerms": NODE_SELECTOR_TERMS,
                "tolerations": TOLERATIONS,
                "excludedLabels": {"ignore-me": "ignored"},
            }
        ),
        "default": "nodeSelectorTerms:\n"
        "  - matchExpressions:\n"
        "      - key: key\n"
        "        operator: In\n"
        "        values: [val]\n",
        "invalid-ns": "invalid",
    },
}


class FakeProvider:
    def __init__(self, config_maps=None):
        self.config_maps = CONFIG_MAPS if config_maps is None else config_maps

    def config_map_data(self, namespace, name):
        try:
            return self.config_maps[(namespace, name)]
        except KeyError:
            raise ProviderError(f"config map {namespace}/{name} not found")


def admission_review(namespace=None, pod=None, uid="1234"):
    request = {"uid": uid, "object": {} if pod is None else pod}
    if namespace is not None:
        request["namespace"] = namespace

    return {
        "apiVersion": "admission.k8s.io/v1beta1",
        "kind": "AdmissionReview",
        "request": request,
    }


def get_patch(response):
    return json.loads(base64.b64decode(response["response"]["patch"]))


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def app():
    app = mutate.create_app(
        PROVIDER=FakeProvider,
        CONFIG_MAP_NAMESPACE=CONTROL_NAMESPACE,
        CONFIG_MAP_NAME=CONFIG_MAP_NAME,
        TESTING=True,
    )
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()
