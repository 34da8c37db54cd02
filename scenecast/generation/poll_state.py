"""Pure poll state machine

No I/O and no timers: the poller feeds provider observations and attempt
counts through these functions, which makes the timeout/failure logic
testable without sleeping.
"""

from typing import Iterable, Optional

from .generation_models import PollState, ProviderState, GenerationJob, GenerationJobStatus


TERMINAL_STATES = {PollState.COMPLETED, PollState.FAILED, PollState.TIMED_OUT}


def next_poll_state(state: PollState,
                    observed: Optional[ProviderState],
                    attempts: int,
                    max_attempts: int) -> PollState:
    """Advance one job's poll state.

    Args:
        state: current state of the job
        observed: provider state seen this iteration, or None when the job
            was not queried
        attempts: poll iterations performed so far, including this one
        max_attempts: iteration ceiling
    """
    if state in TERMINAL_STATES:
        return state
    if observed == ProviderState.COMPLETED:
        return PollState.COMPLETED
    if observed == ProviderState.FAILED:
        return PollState.FAILED
    if attempts >= max_attempts:
        return PollState.TIMED_OUT
    if observed is None and state == PollState.SUBMITTED:
        return PollState.SUBMITTED
    return PollState.POLLING


def batch_outcome(jobs: Iterable[GenerationJob], attempts: int, max_attempts: int) -> PollState:
    """Aggregate state of a batch: failed wins, then completed, then timeout"""
    jobs = list(jobs)
    if any(j.status == GenerationJobStatus.FAILED for j in jobs):
        return PollState.FAILED
    if all(j.status == GenerationJobStatus.COMPLETED for j in jobs):
        return PollState.COMPLETED
    if attempts >= max_attempts:
        return PollState.TIMED_OUT
    return PollState.POLLING


def job_status_for(state: PollState) -> GenerationJobStatus:
    if state == PollState.COMPLETED:
        return GenerationJobStatus.COMPLETED
    if state == PollState.FAILED:
        return GenerationJobStatus.FAILED
    # a timed-out job never finished on the provider side
    return GenerationJobStatus.PROCESSING
