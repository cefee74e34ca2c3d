"""
Sync engine that reconciles mapped records between the Partner and
Raintree orgs.
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from ..connectors.base import RecordGateway
from ..exceptions import RemoteError
from ..models.mapping import RecordMapping
from ..models.records import ObservedRecord, RecordKind
from ..models.sync import (
    PassState, SyncDirection, SyncPassReport, SyncResult, SyncRunReport, SyncStatus, utcnow
)
from .policy import NoOp, PropagatePartnerToRaintree, SyncAction, decide, reported_direction
from .transforms import FieldTransformer

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

# (partner_id, mapping, partner record, raintree record)
_Pair = Tuple[str, RecordMapping, ObservedRecord, ObservedRecord]


class SyncEngine:
    """
    Runs sync passes, one record kind at a time.

    At most one pass per kind is in flight: a pass triggered while the
    previous one for that kind is still running is skipped, not queued.
    Passes for different kinds are independent and may overlap.

    A pass never raises. Remote failures become failed results, and records
    that cannot be read on either side are left unresolved with their
    mapping untouched so they are retried on the next pass.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Initialize the sync engine.

        Args:
            max_workers: Upper bound on concurrent remote calls within a pass
        """
        self.max_workers = max_workers
        self._locks = {kind: threading.Lock() for kind in RecordKind}
        self._states = {kind: PassState.IDLE for kind in RecordKind}

    def state(self, kind: RecordKind) -> PassState:
        """Phase of the current (or last) pass for a kind."""
        return self._states[kind]

    def is_running(self, kind: RecordKind) -> bool:
        return self._locks[kind].locked()

    def _set_state(self, kind: RecordKind, state: PassState) -> None:
        logger.debug(f"{kind.value} sync pass: {self._states[kind].value} -> {state.value}")
        self._states[kind] = state

    def run_sync_pass(
        self,
        kind: RecordKind,
        partner_gateway: RecordGateway,
        raintree_gateway: RecordGateway,
        mappings: Dict[str, RecordMapping],
        dry_run: bool = False,
    ) -> SyncPassReport:
        """
        Reconcile every mapped record of one kind.

        Args:
            kind: Record kind to sync
            partner_gateway: Partner side
            raintree_gateway: Raintree side
            mappings: Current mappings keyed by Partner id
            dry_run: Decide and report without writing to either side

        Returns:
            Report with one result per processed mapping and the full
            updated mapping set for the caller to persist
        """
        report = SyncPassReport(id=str(uuid.uuid4()), kind=kind, dry_run=dry_run,
                                updated_mappings=dict(mappings))

        lock = self._locks[kind]
        if not lock.acquire(blocking=False):
            logger.warning(f"Skipping {kind.value} sync pass {report.id}: previous pass still running")
            report.unresolved = list(mappings)
            report.mark_completed(SyncStatus.SKIPPED)
            return report

        try:
            logger.info(f"Starting {kind.value} sync pass {report.id} over {len(mappings)} mappings"
                        f"{' (dry run)' if dry_run else ''}")
            self._run_pass(report, partner_gateway, raintree_gateway, mappings)
        except Exception as e:
            logger.exception(f"{kind.value} sync pass {report.id} aborted: {e}")
        finally:
            self._set_state(kind, PassState.DONE)
            lock.release()

        report.mark_completed()
        summary = report.summary
        logger.info(f"{kind.value} sync pass {report.id} completed: {summary.synced} synced, "
                    f"{summary.failed} failed, {summary.conflicts} conflicts, "
                    f"{len(report.unresolved)} unresolved")
        return report

    def run_all(
        self,
        partner_gateway: RecordGateway,
        raintree_gateway: RecordGateway,
        mappings_by_kind: Dict[RecordKind, Dict[str, RecordMapping]],
        dry_run: bool = False,
    ) -> SyncRunReport:
        """Run the Opportunity and Lead passes concurrently."""
        with ThreadPoolExecutor(max_workers=len(RecordKind), thread_name_prefix="sync-kind") as executor:
            futures = {
                kind: executor.submit(self.run_sync_pass, kind, partner_gateway, raintree_gateway,
                                      mappings_by_kind.get(kind, {}), dry_run)
                for kind in RecordKind
            }
            return SyncRunReport(
                opportunities=futures[RecordKind.OPPORTUNITY].result(),
                leads=futures[RecordKind.LEAD].result(),
            )

    def _run_pass(self, report: SyncPassReport, partner_gateway: RecordGateway,
                  raintree_gateway: RecordGateway, mappings: Dict[str, RecordMapping]) -> None:
        kind = report.kind
        candidates = self._valid_mappings(report, mappings)

        self._set_state(kind, PassState.FETCHING_PARTNER)
        try:
            partner_records = partner_gateway.fetch_many(kind, [m.partner_id for _, m in candidates])
        except Exception as e:
            logger.error(f"Could not read Partner {kind.sobject} records, skipping pass: {e}")
            report.unresolved.extend(partner_id for partner_id, _ in candidates)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix=f"sync-{kind.value}") as executor:
            self._set_state(kind, PassState.FETCHING_RAINTREE)
            present = []
            for partner_id, mapping in candidates:
                if mapping.partner_id in partner_records:
                    present.append((partner_id, mapping))
                else:
                    logger.info(f"Partner {kind.sobject} {mapping.partner_id} not found, leaving unresolved")
                    report.unresolved.append(partner_id)

            raintree_records = list(executor.map(
                lambda item: self._fetch_raintree(raintree_gateway, kind, item[1]), present
            ))

            pairs: List[_Pair] = []
            for (partner_id, mapping), raintree_record in zip(present, raintree_records):
                if raintree_record is None:
                    report.unresolved.append(partner_id)
                    continue
                pairs.append((partner_id, mapping, partner_records[mapping.partner_id], raintree_record))

            self._set_state(kind, PassState.RECONCILING)
            outcomes = list(executor.map(
                lambda pair: self._reconcile(kind, pair, partner_gateway, raintree_gateway, report.dry_run),
                pairs
            ))

        for (partner_id, _, _, _), (result, updated) in zip(pairs, outcomes):
            report.results.append(result)
            report.updated_mappings[partner_id] = updated

    def _valid_mappings(self, report: SyncPassReport,
                        mappings: Dict[str, RecordMapping]) -> List[Tuple[str, RecordMapping]]:
        """Drop mappings that break the 1:1 pairing, keeping them unresolved."""
        valid = []
        claimed: Dict[str, str] = {}

        for partner_id, mapping in mappings.items():
            if partner_id != mapping.partner_id:
                logger.warning(f"Skipping mapping stored under {partner_id}: it pairs Partner id "
                               f"{mapping.partner_id}")
                report.unresolved.append(partner_id)
                continue
            if mapping.raintree_id in claimed:
                logger.warning(f"Skipping mapping {partner_id}: Raintree id {mapping.raintree_id} is "
                               f"already paired with {claimed[mapping.raintree_id]}")
                report.unresolved.append(partner_id)
                continue
            claimed[mapping.raintree_id] = partner_id
            valid.append((partner_id, mapping))

        return valid

    def _fetch_raintree(self, gateway: RecordGateway, kind: RecordKind,
                        mapping: RecordMapping) -> Optional[ObservedRecord]:
        try:
            record = gateway.fetch_by_id(kind, mapping.raintree_id)
        except Exception as e:
            logger.warning(f"Failed to fetch Raintree {kind.sobject} {mapping.raintree_id}: {e}")
            return None
        if record is None:
            logger.info(f"Raintree {kind.sobject} {mapping.raintree_id} not found, leaving unresolved")
        return record

    def _reconcile(self, kind: RecordKind, pair: _Pair, partner_gateway: RecordGateway,
                   raintree_gateway: RecordGateway, dry_run: bool) -> Tuple[SyncResult, RecordMapping]:
        """Decide and apply the action for one mapping; never raises."""
        _, mapping, partner_record, raintree_record = pair
        now = utcnow()
        direction = SyncDirection.NONE
        action: Optional[SyncAction] = None

        try:
            action = decide(mapping, partner_record, raintree_record)
            direction = reported_direction(action)

            if isinstance(action, NoOp):
                return self._result(mapping, partner_record, direction, now), \
                    self._mark_processed(mapping, now, dry_run)

            if isinstance(action, PropagatePartnerToRaintree):
                target, target_id, target_record = raintree_gateway, mapping.raintree_id, raintree_record
            else:
                target, target_id, target_record = partner_gateway, mapping.partner_id, partner_record

            changed = FieldTransformer.changed_fields(action.payload, target_record)
            logger.info(f"{kind.sobject} {mapping.partner_id}: {action.direction.value}"
                        f"{' (conflict)' if action.conflict else ''}, changed fields: {changed or 'none'}")

            if dry_run:
                return self._result(mapping, partner_record, direction, now, action), mapping

            target.update(kind, target_id, action.payload)

        except RemoteError as e:
            logger.error(f"Failed to sync {kind.sobject} {mapping.partner_id}: {e}")
            return self._result(mapping, partner_record, direction, now, action, error=str(e)), \
                self._mark_processed(mapping, now, dry_run)
        except Exception as e:
            logger.exception(f"Unexpected error syncing {kind.sobject} {mapping.partner_id}: {e}")
            return self._result(mapping, partner_record, direction, now, action, error=str(e)), \
                self._mark_processed(mapping, now, dry_run)

        updated = mapping.model_copy(update={
            "partner_last_modified": partner_record.last_modified_date,
            "raintree_last_modified": raintree_record.last_modified_date,
            "last_sync_source": action.winner,
            "last_sync_time": now,
        })
        return self._result(mapping, partner_record, direction, now, action), updated

    @staticmethod
    def _mark_processed(mapping: RecordMapping, now, dry_run: bool) -> RecordMapping:
        """Record that the mapping was looked at; change-detection fields stay as stored."""
        if dry_run:
            return mapping
        return mapping.model_copy(update={"last_sync_time": now})

    @staticmethod
    def _result(mapping: RecordMapping, partner_record: ObservedRecord, direction: SyncDirection,
                timestamp, action: Optional[SyncAction] = None, error: Optional[str] = None) -> SyncResult:
        return SyncResult(
            record_id=mapping.partner_id,
            record_name=partner_record.display_name,
            direction=direction,
            success=error is None,
            winner=action.winner if direction == SyncDirection.CONFLICT else None,
            error_message=error,
            timestamp=timestamp,
        )
