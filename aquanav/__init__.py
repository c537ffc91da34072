"""Underwater vehicle control components: topics, ZeroMQ transport, subsystems, missions and MPC."""

__version__ = "0.1.0"