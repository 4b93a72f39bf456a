"""Coach profiles, RV-C encoding, accessory state machines and a command-driven bridge for an RV-C CAN bus."""

__version__ = "2.0.0"
__all__ = ["accessories", "bridge", "connection", "devices", "rvc"]