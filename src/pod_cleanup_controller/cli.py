"""
Command-line interface for the pod cleanup controller.

This module provides commands to run the controller, validate policy
manifests, preview cron schedules and generate sample files.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import typer
import yaml
from prometheus_client import start_http_server
from pydantic import ValidationError

from .controllers.manager import ControllerManager
from .controllers.policy_controller import PodCleanupPolicyReconciler
from .exceptions import InvalidScheduleError
from .models.config import ControllerConfiguration
from .models.policy import API_GROUP, API_VERSION, KIND, PodCleanupPolicy
from .utils.kubernetes_client import KubernetesObjectStore, load_kubernetes_configuration
from .utils.schedule import CronSchedule
from .utils.validation import PolicyValidator


app = typer.Typer(
    name="pod-cleanup-controller",
    help="Scheduled, policy-driven pod cleanup for Kubernetes",
    no_args_is_help=True
)

logger = structlog.get_logger()


def setup_logging(log_level: str, log_format: str = "json") -> None:
    """Setup structured logging with specified level and format."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    logging.getLogger("kubernetes").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if log_format == "console"
            else structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _read_documents(path: str) -> List[Any]:
    with open(path, "r") as f:
        if path.endswith(".json"):
            return [json.load(f)]
        return [doc for doc in yaml.safe_load_all(f) if doc is not None]


def load_configuration(config_path: str) -> ControllerConfiguration:
    """
    Load and validate controller configuration from file.

    Args:
        config_path: Path to a YAML or JSON configuration file

    Returns:
        Validated configuration object

    Raises:
        typer.Exit: If configuration is missing or invalid
    """
    if not Path(config_path).exists():
        typer.echo(f"Error: Configuration file not found: {config_path}", err=True)
        raise typer.Exit(1)

    try:
        documents = _read_documents(config_path)
        config = ControllerConfiguration(**(documents[0] if documents else {}))
    except ValidationError as e:
        typer.echo("Configuration validation error:", err=True)
        for error in e.errors():
            typer.echo(f"  {error['loc']}: {error['msg']}", err=True)
        raise typer.Exit(1)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Configuration loaded successfully from {config_path}")
    return config


def _write_document(data: Dict[str, Any], output: str, format: str) -> None:
    with open(Path(output), "w") as f:
        if format.lower() == "json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, indent=2, sort_keys=False)


@app.command()
def run(
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
        envvar="POD_CLEANUP_CONFIG"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level", "-l",
        help="Logging level (overrides configuration)",
        envvar="LOG_LEVEL"
    ),
    log_format: Optional[str] = typer.Option(
        None,
        "--log-format",
        help="Log format, json or console (overrides configuration)",
        envvar="LOG_FORMAT"
    ),
    once: bool = typer.Option(
        False,
        "--once",
        help="Reconcile every policy once and exit"
    )
) -> None:
    """
    Start the pod cleanup controller.

    Loads configuration, connects to the cluster and reconciles
    PodCleanupPolicy resources until interrupted.
    """
    controller_config = load_configuration(config) if config else ControllerConfiguration()

    try:
        if log_level:
            controller_config.log_level = log_level.upper()
        if log_format:
            controller_config.log_format = log_format.lower()
    except ValidationError as e:
        typer.echo(f"Invalid logging option: {e.errors()[0]['msg']}", err=True)
        raise typer.Exit(1)

    setup_logging(controller_config.log_level, controller_config.log_format)

    try:
        asyncio.run(_run_controller(controller_config, once))
    except KeyboardInterrupt:
        typer.echo("\nShutdown requested by user")
    except Exception as e:
        logger.error("Controller failed", error=str(e))
        raise typer.Exit(1)


async def _run_controller(controller_config: ControllerConfiguration, once: bool) -> None:
    """Wire the store, reconciler and manager together and run them."""
    load_kubernetes_configuration(controller_config.kubeconfig)

    store = KubernetesObjectStore(
        api_group=controller_config.api_group,
        api_version=controller_config.api_version,
        plural=controller_config.plural,
        delete_grace_period=controller_config.delete_grace_period_seconds,
    )
    await store.validate_permissions()

    if controller_config.enable_metrics:
        start_http_server(controller_config.monitoring_port)
        logger.info("Metrics server started", port=controller_config.monitoring_port)

    reconciler = PodCleanupPolicyReconciler(
        store,
        max_concurrent_namespaces=controller_config.max_concurrent_namespaces,
    )
    manager = ControllerManager(store, reconciler, controller_config)

    try:
        if once:
            attempted = await manager.run_once()
            logger.info("Single pass completed", reconciliations=attempted)
        else:
            await manager.start()
    finally:
        await manager.stop()
        await store.close()


@app.command()
def validate(
    policy_file: str = typer.Argument(
        ...,
        help="PodCleanupPolicy manifest (YAML, may hold several documents, or JSON)"
    )
) -> None:
    """
    Validate PodCleanupPolicy manifests without applying them.

    Reports schedule, selector, maxAge and phase problems that would stop
    or skew a cleanup.
    """
    try:
        documents = _read_documents(policy_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        typer.echo(f"Error reading {policy_file}: {e}", err=True)
        raise typer.Exit(1)

    validator = PolicyValidator()
    failed = False
    checked = 0

    for document in documents:
        if not isinstance(document, dict) or document.get("kind") != KIND:
            continue
        checked += 1

        try:
            policy = PodCleanupPolicy.model_validate(document)
        except ValidationError as e:
            failed = True
            typer.echo(f"Policy document {checked}: schema error", err=True)
            for error in e.errors():
                typer.echo(f"  {error['loc']}: {error['msg']}", err=True)
            continue

        issues = validator.validate_policy(policy)
        if issues:
            failed = True
            typer.echo(f"Policy {policy.name}: {len(issues)} issue(s)", err=True)
            for issue in issues:
                typer.echo(f"  - {issue}", err=True)
        else:
            typer.echo(f"Policy {policy.name}: OK")

    if checked == 0:
        typer.echo(f"No {KIND} documents found in {policy_file}", err=True)
        raise typer.Exit(1)
    if failed:
        raise typer.Exit(1)


@app.command("next-runs")
def next_runs(
    schedule: str = typer.Argument(..., help="Five-field cron expression"),
    count: int = typer.Option(5, "--count", "-n", min=1, max=100, help="Number of ticks to show"),
    after: Optional[datetime] = typer.Option(
        None,
        "--after",
        help="Start time (ISO 8601, UTC assumed); defaults to now"
    )
) -> None:
    """Print the upcoming ticks of a cron schedule."""
    try:
        cron = CronSchedule.parse(schedule)
    except InvalidScheduleError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    start = after or datetime.now(timezone.utc)
    for tick in cron.upcoming(start, count):
        typer.echo(tick.isoformat())


@app.command("generate-config")
def generate_config(
    output: str = typer.Option(
        "config.yaml",
        "--output", "-o",
        help="Output configuration file path"
    ),
    format: str = typer.Option(
        "yaml",
        "--format", "-f",
        help="Configuration format (yaml or json)"
    )
) -> None:
    """Generate a controller configuration file with default settings."""
    try:
        _write_document(ControllerConfiguration.sample(), output, format)
    except OSError as e:
        typer.echo(f"Failed to generate configuration: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Sample configuration generated: {output}")


@app.command("generate-policy")
def generate_policy(
    output: str = typer.Option(
        "policy.yaml",
        "--output", "-o",
        help="Output manifest path"
    ),
    format: str = typer.Option(
        "yaml",
        "--format", "-f",
        help="Manifest format (yaml or json)"
    )
) -> None:
    """
    Generate a sample PodCleanupPolicy manifest.

    The sample removes failed and completed pods older than a day from
    namespaces labelled for cleanup, in dry-run mode.
    """
    sample_policy = {
        "apiVersion": f"{API_GROUP}/{API_VERSION}",
        "kind": KIND,
        "metadata": {
            "name": "cleanup-finished-pods"
        },
        "spec": {
            "schedule": "*/15 * * * *",
            "namespaceSelector": {
                "matchLabels": {
                    "cleanup.k8s.io/enabled": "true"
                }
            },
            "podSelector": {
                "matchExpressions": [
                    {
                        "key": "cleanup.k8s.io/keep",
                        "operator": "DoesNotExist"
                    }
                ]
            },
            "podStatuses": ["Failed", "Succeeded"],
            "maxAge": "24h",
            "dryRun": True
        }
    }

    try:
        _write_document(sample_policy, output, format)
    except OSError as e:
        typer.echo(f"Failed to generate policy: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Sample policy generated: {output}")
    typer.echo("Set dryRun to false once the reported pods look right")


def main() -> None:
    """Main entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
