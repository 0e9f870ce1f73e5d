import logging

from kubernetes import config, client
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import DynamicApiError
from typing_extensions import Protocol

from exc import ProviderError

LOG = logging.getLogger(__name__)


class Provider(Protocol):
    def config_map_data(self, namespace: str, name: str) -> dict[str, str]: ...


class KubernetesProvider(Provider):
    def __init__(self):
        """Allocate a Kubernetes dynamic client and the resource clients we
        need to read ConfigMaps and manage webhook configurations"""

        super().__init__()

        try:
            config.load_config()
        except config.ConfigException as err:
            LOG.warning("unable to configure Kubernetes client: %s", err)
            raise ProviderError("unable to configure Kubernetes client")

        k8s_client = client.ApiClient()
        dyn_client = DynamicClient(k8s_client)

        self._client = dyn_client
        self._config_map_resource = dyn_client.resources.get(
            api_version="v1", kind="ConfigMap"
        )

    @property
    def mutating_webhook_configurations(self):
        return self._client.resources.get(
            api_version="admissionregistration.k8s.io/v1",
            kind="MutatingWebhookConfiguration",
        )

    def config_map_data(self, namespace, name):
        try:
            config_map = self._config_map_resource.get(name=name, namespace=namespace)
        except DynamicApiError as err:
            raise ProviderError(
                f"unable to read config map {namespace}/{name}: {err.reason}"
            ) from err
        except Exception as err:
            LOG.error("failed to read config map %s/%s: %s", namespace, name, err)
            raise ProviderError(f"unable to read config map {namespace}/{name}") from err

        return config_map.to_dict().get("data") or {}
