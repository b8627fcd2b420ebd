"""
Per-document logging: the messages carry the reference to their document.

All the messages about saving or populating the documents are logged via
a `DocumentLogger`, which adds the document's reference (the collection
and the id) to every log record. The formatters then either prefix the
messages with the reference (in the text logs), or put the reference into
a separate field (in the JSON logs), so that the log parsers can filter them.
"""
import copy
import enum
import logging
from typing import TYPE_CHECKING, Any, MutableMapping, Optional, TextIO, Tuple

# Luckily, we do not mock these ones in tests, so we can import them into our namespace.
try:
    # python-json-logger>=3.1.0
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    # python-json-logger<3.1.0
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from docmap.structs import bodies

logger = logging.getLogger('docmap.documents')

DEFAULT_JSON_REFKEY = 'document'
""" A key for document references in JSON logs, as seen by the log parsers. """


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = enum.auto()


class DocumentFormatter(logging.Formatter):
    pass


class DocumentTextFormatter(DocumentFormatter, logging.Formatter):
    pass


class DocumentJsonFormatter(DocumentFormatter, _pjl_JsonFormatter):
    def __init__(
            self,
            *args: Any,
            refkey: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        # Avoid type checking, as the args are not in the parent consructor.
        reserved_attrs = kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS)
        reserved_attrs = set(reserved_attrs)
        reserved_attrs |= {'doc_ref'}
        kwargs.update(reserved_attrs=reserved_attrs)
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self._refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: MutableMapping[str, Any],
            record: logging.LogRecord,
            message_dict: MutableMapping[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self._refkey and hasattr(record, 'doc_ref'):
            ref = getattr(record, 'doc_ref')
            log_record[self._refkey] = ref

        if 'severity' not in log_record:
            log_record['severity'] = (
                "debug" if record.levelno <= logging.DEBUG else
                "info" if record.levelno <= logging.INFO else
                "warn" if record.levelno <= logging.WARNING else
                "error" if record.levelno <= logging.ERROR else
                "fatal")


class DocumentPrefixingMixin(DocumentFormatter):
    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, 'doc_ref'):
            ref = getattr(record, 'doc_ref')
            collection = ref.get('collection', '')
            id = ref.get('id')
            prefix = f"[{collection}/{id}]" if id is not None else f"[{collection}]"
            record = copy.copy(record)  # shallow
            record.msg = f"{prefix} {record.msg}"
        return super().format(record)


class DocumentPrefixingTextFormatter(DocumentPrefixingMixin, DocumentTextFormatter):
    pass


class DocumentPrefixingJsonFormatter(DocumentPrefixingMixin, DocumentJsonFormatter):
    pass


class DocumentLogger(logging.LoggerAdapter):  # type: ignore
    """
    A logger/adapter to carry the document identifiers for formatting.

    The identifiers are then used for formatting the per-document messages
    in `DocumentPrefixingMixin` and in `DocumentJsonFormatter`.

    As little information is carried as possible: the model, the collection,
    and the id. The id is taken when the logger is created, so the new documents
    (which get their ids when inserted) need a new logger after the insertion.
    """

    def __init__(
            self,
            *,
            body: bodies.Body,
            model: Optional[str] = None,
            collection: Optional[str] = None,
    ) -> None:
        super().__init__(logger, dict(
            doc_ref=dict(
                model=model,
                collection=collection,
                id=body.id,
            ),
        ))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


# Used to identify and remove our own handlers on re-configuration (e.g. in CLI tests).
if TYPE_CHECKING:
    class _DocmapStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _DocmapStreamHandler(logging.StreamHandler):
        pass


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = _DocmapStreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, _DocmapStreamHandler)]
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only the library's messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> DocumentFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    if log_format is LogFormat.JSON:
        if log_prefix:
            return DocumentPrefixingJsonFormatter(refkey=log_refkey)
        else:
            return DocumentJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        if log_prefix:
            return DocumentPrefixingTextFormatter(log_format.value)
        else:
            return DocumentTextFormatter(log_format.value)
    elif isinstance(log_format, str):
        if log_prefix:
            return DocumentPrefixingTextFormatter(log_format)
        else:
            return DocumentTextFormatter(log_format)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
