"""
Top-level LangGraph entrypoint wrapper.

The LangGraph CLI looks for a callable named `get_graph` importable from the project
root. The scan graph reads its collaborators from
``config["configurable"]["deps"]``; see ``walkworthy.services.scan_runner``.
"""

from typing import Any


def get_graph() -> Any:
    """Return the compiled scan graph."""
    from walkworthy.agent.graph import build_scan_graph

    return build_scan_graph()


__all__ = ["get_graph"]
