"""Gateway-labelling and status controllers for a managed-cluster networking add-on agent."""

__version__ = "0.4.0"

__all__ = [
    "agent",
    "config_controller",
    "connections_controller",
    "gateways_controller",
    "model",
]