"""mac2mqtt - bridge macOS host state to Home Assistant over MQTT."""

__version__ = "0.3.0"
