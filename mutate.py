import logging
import sys

from flask import Flask, Response, current_app, request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from exc import ApplicationError
from injector import ANNOTATION_KEY, Injector
from policy import ConfigMapKeysPolicy, NamespaceKeyPolicy
from providers import KubernetesProvider

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

ADMISSION_REVIEWS = Counter(
    "node_affinity_admission_reviews_total",
    "AdmissionReview requests handled by the webhook",
    ["result"],
)

POLICY_SOURCES = {
    "namespace-key": lambda provider, config: NamespaceKeyPolicy(
        provider, config["CONFIG_MAP_NAMESPACE"], config["CONFIG_MAP_NAME"]
    ),
    "configmap-keys": lambda provider, config: ConfigMapKeysPolicy(
        provider, config["CONFIG_MAP_NAME"]
    ),
}


class DEFAULTS:
    PROVIDER = KubernetesProvider
    POLICY_SOURCE = "namespace-key"
    CONFIG_MAP_NAME = "namespace-node-affinity"
    CONFIG_MAP_NAMESPACE = "namespace-node-affinity"
    ANNOTATION_KEY = ANNOTATION_KEY
    HOST = "0.0.0.0"
    PORT = 8443
    CERT_FILE = "/etc/webhook/certs/tls.crt"
    KEY_FILE = "/etc/webhook/certs/tls.key"


def mutate_pod():
    try:
        mutated = current_app.injector.mutate(request.get_data())
    except ApplicationError as err:
        ADMISSION_REVIEWS.labels(result=type(err).__name__).inc()
        raise

    if mutated is None:
        ADMISSION_REVIEWS.labels(result="skipped").inc()
        return "", 200

    ADMISSION_REVIEWS.labels(result="patched").inc()
    return mutated, 200, {"content-type": "application/json"}


def handle_applicationerror(err):
    LOG.error("%s", err)
    return str(err), 500, {"content-type": "text/plain"}


def health():
    return "OK", 200, {"content-type": "text/plain"}


def metrics():
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    Configuration comes from DEFAULTS, then from NODE_AFFINITY_* environment
    variables, then from any keyword arguments.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    app.config.from_prefixed_env("NODE_AFFINITY")
    if config:
        app.config.update(config)

    policy_source = POLICY_SOURCES.get(app.config["POLICY_SOURCE"])
    if policy_source is None:
        LOG.error("Unknown policy source: %s", app.config["POLICY_SOURCE"])
        sys.exit(1)

    app.provider = app.config["PROVIDER"]()
    app.injector = Injector(
        policy_source(app.provider, app.config),
        annotation_key=app.config["ANNOTATION_KEY"],
    )

    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/metrics", view_func=metrics)
    app.add_url_rule("/mutate", view_func=mutate_pod, methods=["POST"])

    return app


def main():
    app = create_app()
    app.run(
        host=app.config["HOST"],
        port=app.config["PORT"],
        ssl_context=(app.config["CERT_FILE"], app.config["KEY_FILE"]),
    )


if __name__ == "__main__":
    main()
