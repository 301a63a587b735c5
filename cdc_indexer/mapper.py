from typing import Dict, List, Sequence

from .models import HttpVerb, IndexOperation, MutationEvent, MutationKind

VERB_BY_KIND: Dict[MutationKind, HttpVerb] = {
    MutationKind.INSERT: HttpVerb.PUT,
    MutationKind.UPDATE: HttpVerb.POST,
    MutationKind.DELETE: HttpVerb.DELETE,
}

if set(VERB_BY_KIND) != set(MutationKind):
    raise RuntimeError("every MutationKind needs a verb")


def map_to_operation(event: MutationEvent) -> IndexOperation:
    verb = VERB_BY_KIND[event.operation]
    payload = None if verb is HttpVerb.DELETE else dict(event.data)
    return IndexOperation(
        target_index=event.table_name,
        document_id=event.record_id,
        verb=verb,
        payload=payload,
    )


def map_batch(events: Sequence[MutationEvent]) -> List[IndexOperation]:
    return [map_to_operation(event) for event in events]
