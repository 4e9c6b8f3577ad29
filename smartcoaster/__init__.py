"""SmartCoaster companion: durable alarms and the coaster temperature link."""

__version__ = "0.1.1"
