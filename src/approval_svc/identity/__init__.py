"""Actor identity - who is performing a workflow action."""

from .actor import Actor, ActorRole
from .extractor import ActorExtractor, extract_actor

__all__ = [
    "Actor",
    "ActorRole",
    "ActorExtractor",
    "extract_actor",
]
