"""Employee Gateway - resilient facade over the upstream employee directory.

Note: Build the service through `employee_gateway.dependencies` to get the
single process-wide resilience pipeline.
"""

__version__ = "1.0.0"

__all__ = ["clients", "core", "models", "observability", "resilience", "services"]
