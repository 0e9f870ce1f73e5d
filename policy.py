"""Resolve the scheduling policy that applies to a namespace.

Two sources are supported:

- ``namespace-key``: a single ConfigMap in the webhook's own namespace, with
  one YAML document per target namespace, keyed by namespace name.
- ``configmap-keys``: a ConfigMap with a well-known name in every target
  namespace, with separate ``nodeSelectorTerms``, ``tolerations`` and
  ``excludedLabels`` keys.

Every lookup reads the ConfigMap again; nothing is cached.
"""

import logging
from typing import Any

import pydantic
import yaml
from typing_extensions import Protocol

from exc import InvalidConfiguration, MissingConfiguration, ProviderError
from models import NamespaceConfig
from providers import Provider

LOG = logging.getLogger(__name__)

CONFIG_KEYS = ("nodeSelectorTerms", "tolerations", "excludedLabels")


class PolicySource(Protocol):
    def namespace_config(self, namespace: str) -> NamespaceConfig: ...


def _load_yaml(text: str, namespace: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise InvalidConfiguration(
            f"invalid configuration for {namespace}: {err}"
        ) from err


def _validate(doc: Any, namespace: str) -> NamespaceConfig:
    if not isinstance(doc, dict):
        raise InvalidConfiguration(
            f"invalid configuration for {namespace}: expected a mapping"
        )

    try:
        return NamespaceConfig.model_validate(doc)
    except pydantic.ValidationError as err:
        raise InvalidConfiguration(
            f"invalid configuration for {namespace}: {err}"
        ) from err


def decode_namespace_config(text: str, namespace: str) -> NamespaceConfig:
    """Decode a YAML namespace configuration document."""
    return _validate(_load_yaml(text, namespace), namespace)


class NamespaceKeyPolicy(PolicySource):
    def __init__(self, provider: Provider, config_map_namespace: str, config_map_name: str):
        self.provider = provider
        self.config_map_namespace = config_map_namespace
        self.config_map_name = config_map_name

    def namespace_config(self, namespace):
        try:
            data = self.provider.config_map_data(
                self.config_map_namespace, self.config_map_name
            )
        except ProviderError as err:
            raise MissingConfiguration(f"missing configuration: {err}") from err

        try:
            text = data[namespace]
        except KeyError:
            raise MissingConfiguration(f"missing configuration for {namespace}")

        return decode_namespace_config(text, namespace)


class ConfigMapKeysPolicy(PolicySource):
    def __init__(self, provider: Provider, config_map_name: str):
        self.provider = provider
        self.config_map_name = config_map_name

    def namespace_config(self, namespace):
        try:
            data = self.provider.config_map_data(namespace, self.config_map_name)
        except ProviderError as err:
            raise MissingConfiguration(f"missing configuration: {err}") from err

        if not ("nodeSelectorTerms" in data or "tolerations" in data):
            raise MissingConfiguration(
                f"missing configuration for {namespace}: config map "
                f"{self.config_map_name} has neither nodeSelectorTerms nor tolerations"
            )

        doc = {
            key: _load_yaml(data[key], namespace) for key in CONFIG_KEYS if key in data
        }
        return _validate(doc, namespace)
