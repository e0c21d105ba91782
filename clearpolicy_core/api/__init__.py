from .congress import CongressRegistry, congress_bill_url
from .openstates import OpenStatesRegistry

__all__ = [
    "CongressRegistry",
    "OpenStatesRegistry",
    "congress_bill_url",
]
