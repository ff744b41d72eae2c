"""Collaborator clients - the only code in the engine that talks to the network

Components:
    base.py: collaborator interfaces plus null implementations
    remote.py: httpx implementations against the productivity API
    static.py: plan replay from YAML (offline simulation and demos)
    circuit_breaker.py: stops hammering a collaborator that keeps failing

Endpoints:
    POST /api/flow/start                      -> recommendation (task sequence)
    POST /api/flow/sessions/{id}/events       -> session mirror
    POST /api/action-events                   -> behavioral telemetry
"""

# Service names used by the circuit breaker
MIRROR_SERVICE = "session_mirror"
TELEMETRY_SERVICE = "telemetry"

__all__ = ["MIRROR_SERVICE", "TELEMETRY_SERVICE"]
