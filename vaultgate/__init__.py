"""vault-gate: a loopback control plane that lets MCP agents work on a notes vault."""

__version__ = "0.1.0"
