import dataclasses


@dataclasses.dataclass(frozen=True, slots=True)
class FlowState:
    accept_input: bool
    output_pending: bool


def compute_flow(
    *, end_of_input: bool, total_buffered: int, ceiling: int, queue_empty: bool
) -> FlowState:
    """Decides which endpoints are worth waiting on.

    Derived from the current state alone, so it can be recomputed after every
    event without remembering what was decided before.

    Parameters
    ----------
    end_of_input : bool
        Whether no further input will be read.
    total_buffered : int
        Unwritten bytes currently queued.
    ceiling : int
        Maximum number of bytes that may be queued.
    queue_empty : bool
        Whether the queue holds no chunks.

    Returns
    -------
    FlowState
        Interest in input and output readiness.
    """

    return FlowState(
        accept_input=not end_of_input and total_buffered < ceiling,
        output_pending=not queue_empty,
    )
