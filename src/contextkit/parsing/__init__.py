from contextkit.parsing.context_parser import (
    ContextParser,
    ordered_elements,
    split_identifier_path,
)

__all__ = ["ContextParser", "ordered_elements", "split_identifier_path"]
