"""
GraphQL operation model.

An :class:`Operation` is what an upstream pipeline stage hands to the link.
Besides the request itself it carries a mutable context mapping that stages
use to pass options down and read transport details back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from graphql.language import DocumentNode


@dataclass
class Operation:
    """One GraphQL request travelling through the pipeline."""

    query: Union[DocumentNode, str]
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None
    extensions: Optional[Dict[str, Any]] = None
    context: Dict[str, Any] = field(default_factory=dict, repr=False)

    def get_context(self) -> Dict[str, Any]:
        """Return a shallow copy of the operation context."""
        return dict(self.context)

    def set_context(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge ``values`` into the context and return the new context."""
        self.context = {**self.context, **values}
        return self.get_context()
