"""
Services Package

This package provides the service layer of the Employee Gateway:
- cache: the collection and by-id result caches
- employees: EmployeeService, the public read/write facade
- health: HealthChecker for upstream and component health

Import EmployeeService and HealthChecker from their modules; they depend on
the resilience pipeline, which itself depends on the caches exported here.
"""

from employee_gateway.services.cache import (
    BY_ID_CACHE_NAME,
    COLLECTION_CACHE_NAME,
    COLLECTION_KEY,
    CacheStats,
    ResultCache,
    TTLCache,
)

__all__ = [
    "CacheStats",
    "ResultCache",
    "TTLCache",
    "COLLECTION_CACHE_NAME",
    "BY_ID_CACHE_NAME",
    "COLLECTION_KEY",
]
