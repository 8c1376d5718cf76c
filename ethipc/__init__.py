"""ethipc - Ethereum node wallet client over local IPC."""

__version__ = "0.1.0"
__logo__ = "⟠"
