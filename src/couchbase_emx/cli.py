"""Couchbase EMX CLI - Prometheus exporter for Couchbase cluster settings.

Commands:
- serve: expose /metrics over HTTPS (or HTTP with --disable-tls)
- describe: print the metric catalog

Counters are exposed with a _total suffix (failover_counter is scraped as
failover_counter_total); describe prints the exposed series name.

Settings come from the environment (see couchbase_emx.config.Settings);
command line options override them.
"""

import logging

import httpx
import typer
from pydantic import ValidationError
from prometheus_client import CollectorRegistry, start_http_server

from couchbase_emx.aggregator import SnapshotAggregator
from couchbase_emx.cb_client import CouchbaseClient
from couchbase_emx.collector import CouchbaseCollector
from couchbase_emx.config import Settings
from couchbase_emx.exceptions import TransportConfigError
from couchbase_emx.log import configure_logging
from couchbase_emx.schema import MetricRegistry
from couchbase_emx.transport import build_http_client

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="couchbase-emx",
    help="Prometheus exporter for Couchbase cluster settings and events",
    no_args_is_help=True,
)


def build_collector(http: httpx.Client) -> CouchbaseCollector:
    """Wire client, aggregator, throttle and projector into a collector."""
    return CouchbaseCollector(aggregator=SnapshotAggregator(client=CouchbaseClient(http=http)))


@app.command("serve")
def serve(
    client_cert: str = typer.Option(
        None, "--client-cert", help="Client certificate presented to couchbase-server (CB_CLIENT_CERT)"
    ),
    client_key: str = typer.Option(
        None, "--client-key", help="Private key of the client certificate (CB_CLIENT_KEY)"
    ),
    tls_cert: str = typer.Option(
        None, "--tls-cert", help="Server certificate for the /metrics endpoint (EMX_TLS_CERT)"
    ),
    tls_key: str = typer.Option(
        None, "--tls-key", help="Server private key for the /metrics endpoint (EMX_TLS_KEY)"
    ),
    disable_tls: bool = typer.Option(
        False, "--disable-tls", help="Serve /metrics over plain HTTP"
    ),
    port: int = typer.Option(None, "--port", "-p", help="Port for /metrics (EMX_PORT, default 9876)"),
    log_level: str = typer.Option(None, "--log-level", help="Log level (EMX_LOG_LEVEL, default INFO)"),
) -> None:
    """
    Start the exporter.

    Environment variables:
        CB_PROTOCOL, CB_HOST, CB_PORT: Couchbase REST API location
        CB_CLIENT_CERT, CB_CLIENT_KEY: client certificate for Couchbase
        EMX_PORT, EMX_TLS_CERT, EMX_TLS_KEY: exporter endpoint
        EMX_THROTTLE_TIME: minimum seconds between scrapes (default 25)
    """
    overrides = {
        "cb_client_cert": client_cert,
        "cb_client_key": client_key,
        "emx_tls_cert": tls_cert,
        "emx_tls_key": tls_key,
        "emx_port": port,
        "emx_log_level": log_level,
    }
    try:
        settings = Settings().model_copy(update={k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    configure_logging(settings.emx_log_level)

    if disable_tls:
        logger.info("TLS Disabled")
        certfile = keyfile = None
    else:
        logger.info("TLS Enabled")
        certfile, keyfile = settings.emx_tls_cert, settings.emx_tls_key
        if not certfile or not keyfile:
            logger.error("TLS enabled but no CERT or KEY file declared.")
            raise typer.Exit(1)

    try:
        http = build_http_client(settings)
    except TransportConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    registry = CollectorRegistry()
    registry.register(build_collector(http))
    logger.info("Successfully registered the metrics with prometheus")

    try:
        server, thread = start_http_server(
            settings.emx_port, registry=registry, certfile=certfile, keyfile=keyfile
        )
    except OSError as e:
        logger.error(f"Failed to start metrics server on port {settings.emx_port}: {e}")
        http.close()
        raise typer.Exit(1)

    logger.info(f"Exposing metrics at the endpoint '/metrics' on port '{settings.emx_port}'")
    try:
        thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")
        server.shutdown()
    finally:
        http.close()


@app.command("describe")
def describe() -> None:
    """
    Print every metric the exporter publishes.

    Counters show the exposed series name, e.g. failover_counter -> failover_counter_total.
    """
    for descriptor in MetricRegistry():
        labels = ",".join(descriptor.labels)
        name = descriptor.name
        if descriptor.sample_name != name:
            name = f"{name} -> {descriptor.sample_name}"
        typer.echo(f"{name} [{descriptor.kind.value}] {{{labels}}} {descriptor.help}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
