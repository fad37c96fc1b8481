"""Process wiring: settings and a database handle in, managers out."""

from acmer.app.factory import create_managers, create_plugin_factory

__all__ = ["create_managers", "create_plugin_factory"]
