from .display import display_answer

__all__ = [
    "display_answer",
]
