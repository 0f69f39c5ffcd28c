"""Protocol helpers, proxying and process management for letting a Minecraft server sleep when idle."""

__version__ = "0.2.11"
__all__ = ["__version__"]