"""aliembed.stream: streaming of preview documents."""
from aliembed.stream.background import BackgroundTasks
from aliembed.stream.document import FILLER, DocumentRenderer
from aliembed.stream.responder import StreamingResponder, StreamResult
from aliembed.stream.sink import ByteSink, ResponseSink

__all__ = [
    "BackgroundTasks",
    "ByteSink",
    "DocumentRenderer",
    "FILLER",
    "ResponseSink",
    "StreamResult",
    "StreamingResponder",
]
