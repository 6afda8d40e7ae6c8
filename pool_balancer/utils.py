# utils.py

"""Utility functions for the pool VM balancer."""

import json
import logging
import os
from typing import Any, List

import openstack
from openstack.connection import Connection
from pydantic import ValidationError

from .config import REQUIRED_ENV_VARS, LOG_FORMAT, LOG_DATE_FORMAT
from .exceptions import ConfigurationError, OpenStackError
from .models import PlanSpec
from .schemas import Configuration

logger = logging.getLogger(__name__)

def setup_logging(verbose: bool = False) -> None:
    """Configure logging with appropriate level and format."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )

def get_openstack_connection() -> Connection:
    """
    Establish connection to OpenStack using environment variables.
    Raises ConfigurationError if required variables are missing.
    """
    missing_vars = [var for var in REQUIRED_ENV_VARS if not os.environ.get(var)]
    if missing_vars:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing_vars)}"
        )

    try:
        return openstack.connect()
    except Exception as e:
        raise OpenStackError(f"Failed to connect to OpenStack: {e}")

def load_configuration(path: str) -> List[PlanSpec]:
    """Read the plans of a JSON configuration file."""
    try:
        with open(path) as f:
            configuration = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Unable to read configuration {path}: {e}")
    except ValueError as e:
        raise ConfigurationError(f"Invalid JSON in configuration {path}: {e}")

    return parse_plans(configuration)

def parse_plans(configuration: Any) -> List[PlanSpec]:
    """
    Validate a configuration and return its plans.

    Expected shape:
        {"plans": [{"name": str, "mode": bool, "pools": [str],
                    "thresholds": {"cpu": float, "memory_free": float}}]}

    `mode` is true for performance, false for density; the mode names are
    accepted too. `thresholds` is optional.
    """
    try:
        parsed = Configuration.model_validate(configuration)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")

    return [plan.to_spec() for plan in parsed.plans]

def print_hosts_averages(plan_name: str, hosts, averages) -> None:
    """Print the blended averages of the hosts of a plan."""
    logger.info(f"Plan {plan_name}:")
    for host in hosts:
        host_averages = averages[host.id]
        logger.info(f"  {host.name} ({host.id}) pool={host.pool_id}")
        logger.info(f"    CPU: {host_averages.cpu:.1f}%")
        logger.info(f"    Free memory: {host_averages.memory_free / (1024 * 1024):.0f} MiB")
        logger.info(f"    Used memory: {host_averages.memory / (1024 * 1024):.0f} MiB")
