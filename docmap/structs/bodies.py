"""
The basic structures of the documents, as used all over the codebase.

The raw documents are plain JSON-like dicts, as stored in or fetched from
the store. The documents (`Body` and its descendants) wrap the raw documents
with the dirty-tracking and the population state.

They are extracted into a separate module to prevent the circular imports:
the value codecs need to recognise the documents, and the documents need
the value codecs to convert themselves back to the raw documents.
"""
import abc
import enum
from typing import Any, Dict, Mapping

RawDocument = Dict[str, Any]
RawProjection = Mapping[str, Any]


class _Undefined(enum.Enum):
    token = enum.auto()

    def __repr__(self) -> str:
        return 'UNDEFINED'

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined.token
""" The absence of a value -- as opposed to the ``None`` value. """


class Body(metaclass=abc.ABCMeta):

    @property
    @abc.abstractmethod
    def id(self) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    def to_object(self, *, depopulate: bool = False) -> RawDocument:
        raise NotImplementedError
