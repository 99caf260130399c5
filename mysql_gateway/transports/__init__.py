"""Channel bindings: stdio and streamable HTTP."""
