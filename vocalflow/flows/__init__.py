from .flow_store import FlowStore, ClipStore, validate_flow
from .editor import FlowEditor


__all__ = [
    'FlowStore',
    'ClipStore',
    'validate_flow',
    'FlowEditor',
]
