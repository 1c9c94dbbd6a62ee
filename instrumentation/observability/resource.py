"""
instrumentation - Resource Descriptor

Builds the OpenTelemetry resource attached to every exported span and
metric: service identity, host, process and telemetry SDK attributes, plus
anything set through OTEL_RESOURCE_ATTRIBUTES.
"""

import platform
import socket

from opentelemetry.sdk.resources import (
    HOST_ARCH,
    HOST_NAME,
    SERVICE_NAME,
    SERVICE_VERSION,
    OTELResourceDetector,
    ProcessResourceDetector,
    Resource,
    get_aggregated_resources,
)

from ..errors import TelemetrySetupError


def build_resource(service_name: str, service_version: str) -> Resource:
    """
    Create the service resource.

    Detector failures are raised, not swallowed.

    Raises:
        TelemetrySetupError: a detector failed
    """
    try:
        base = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            HOST_NAME: socket.gethostname(),
            HOST_ARCH: platform.machine(),
        })
        return get_aggregated_resources(
            [
                OTELResourceDetector(raise_on_error=True),
                ProcessResourceDetector(raise_on_error=True),
            ],
            initial_resource=base,
        )
    except Exception as e:
        raise TelemetrySetupError("resource", e) from e
