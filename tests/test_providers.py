from unittest import mock

import pytest
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import NotFoundError

import providers
from exc import ProviderError


@pytest.fixture()
def dyn_client():
    with mock.patch("providers.config.load_config"), mock.patch(
        "providers.client.ApiClient"
    ), mock.patch("providers.DynamicClient") as mock_dynamic_client:
        yield mock_dynamic_client.return_value


def test_config_map_data(dyn_client):
    resource = dyn_client.resources.get.return_value
    resource.get.return_value.to_dict.return_value = {
        "metadata": {"name": "test-cm"},
        "data": {"default": "tolerations: []"},
    }

    provider = providers.KubernetesProvider()
    assert provider.config_map_data("ns", "test-cm") == {"default": "tolerations: []"}
    resource.get.assert_called_once_with(name="test-cm", namespace="ns")


def test_config_map_without_data(dyn_client):
    resource = dyn_client.resources.get.return_value
    resource.get.return_value.to_dict.return_value = {"metadata": {"name": "test-cm"}}

    assert providers.KubernetesProvider().config_map_data("ns", "test-cm") == {}


def test_config_map_not_found(dyn_client):
    resource = dyn_client.resources.get.return_value
    resource.get.side_effect = NotFoundError(ApiException(status=404, reason="Not Found"))

    with pytest.raises(ProviderError) as err:
        providers.KubernetesProvider().config_map_data("ns", "test-cm")

    assert "Not Found" in str(err.value)


def test_config_map_connection_error(dyn_client):
    resource = dyn_client.resources.get.return_value
    resource.get.side_effect = OSError("connection refused")

    with pytest.raises(ProviderError):
        providers.KubernetesProvider().config_map_data("ns", "test-cm")


def test_unable_to_configure_client():
    with mock.patch("providers.config.load_config") as load_config:
        load_config.side_effect = providers.config.ConfigException("no config")
        with pytest.raises(ProviderError):
            providers.KubernetesProvider()
