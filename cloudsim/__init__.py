"""
cloudsim package initializer.

This package contains the discrete-event engine, primitives (clock, event
list, service points), routing logic, policies, and result collection used by
the cloud task-processing queueing-network model: tasks pass through data
storage, classification, CPU or GPU compute, and result storage.
"""
__all__ = [
    "entities", "policies", "random_streams", "queues", "stations",
    "arrivals", "network", "metrics", "simulation", "records",
    "config", "errors",
]
