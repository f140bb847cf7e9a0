from relay.services.batch_service import process_batch, run_batch, run_sequentially
from relay.services.dispatch_service import dispatch_event
from relay.services.partition_service import (
    MISSING_ID_PLACEHOLDER,
    EventRecord,
    flatten_entries,
    partition_events,
    partition_key,
)
from relay.services.result import BatchReport, DispatchResult
