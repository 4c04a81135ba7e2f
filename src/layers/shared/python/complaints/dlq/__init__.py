"""Dead-letter sinks."""

from complaints.dlq.sink import DeadLetterSink, LoggingDeadLetterSink, SqsDeadLetterSink

__all__ = [
    "DeadLetterSink",
    "LoggingDeadLetterSink",
    "SqsDeadLetterSink",
]
