class AggregationError(Exception):
    """Base class for errors raised by the aggregation engine."""


class NoDataError(AggregationError):
    """The requested stream has no playback events in the window.

    This is an expected condition: schedulers usually skip the stream and
    log at low severity instead of treating it as a failure.
    """

    def __init__(self, stream_id: str):
        self.stream_id = stream_id
        super().__init__(f"no data for stream {stream_id}")
