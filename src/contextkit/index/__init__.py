from contextkit.index.element_index import ElementIndex

__all__ = ["ElementIndex"]
