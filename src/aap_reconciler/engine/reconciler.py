"""Reconciler - drives the lifecycle of managed objects.

Sequences the CRUD primitives so that a ManagedObject's ``known`` state
reflects the controller after every operation:

1. create: POST, then hydrate everything from the response
2. read: GET by the stored id, replace fields, keep the id
3. update: overlay declared fields on known state, PATCH, hydrate
4. delete: DELETE, then forget the object

``apply`` strings these together into a single declarative step.
"""
import logging
from dataclasses import replace
from typing import Optional, TypeVar

from ..client.executor import ControllerClient, ResourceClient
from ..errors import ControllerError, IdentityError, NotFound
from ..resources.references import ReferenceResolver
from ..resources.schema import Resource
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed
from .drift import DiffEngine, describe_changes
from .schema import (
    Action,
    ChangeType,
    DiffResult,
    ManagedObject,
    ObjectState,
    ReconcileResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Resource)


class Reconciler:
    """
    Reconcile caller-owned ManagedObjects against the controller.

    The reconciler keeps no state of its own; everything lives in the
    ManagedObject records passed in.

    Usage:
        reconciler = Reconciler(ControllerClient(transport))
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        result = await reconciler.apply(obj, dry_run=True)
    """

    def __init__(
        self,
        client: ControllerClient,
        tracker: Optional[ChangeTracker] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            client: CRUD client bound to a controller transport
            tracker: Audit trail for mutations (optional)
        """
        self.client = client
        self.resolver = ReferenceResolver()
        self.diff_engine = DiffEngine()
        self.tracker = tracker or ChangeTracker(client.transport.target)

    @property
    def target(self) -> str:
        return self.client.transport.target

    def _crud(self, record: T) -> ResourceClient[T]:
        return self.client.for_type(type(record))

    @timed("reconcile_create")
    async def create(self, obj: ManagedObject[T]) -> T:
        """
        Create the object and hydrate ``known`` from the response.

        Raises:
            IdentityError: If the object is already managed
            InvalidReference: If a reference field cannot be parsed
            ControllerError: Any failure from the controller
        """
        if obj.is_managed:
            raise IdentityError(f"Cannot create {obj.label}: already managed")

        desired = self.resolver.resolve(obj.desired)
        crud = self._crud(desired)

        try:
            created = await crud.create(desired)
        except ControllerError as e:
            self._audit(desired, "create", None, False, error=str(e))
            raise

        obj.known = created
        obj.state = ObjectState.MANAGED
        self._audit(desired, "create", created.id, True)
        return created

    @timed("reconcile_read")
    async def read(self, obj: ManagedObject[T]) -> bool:
        """
        Refresh ``known`` from the controller.

        Returns:
            True if the object still exists; False if it was gone (drift),
            in which case the object becomes unmanaged and needs re-creation

        Raises:
            IdentityError: If the object is not managed
        """
        object_id = self._require_managed(obj, "read")
        crud = self._crud(obj.desired)

        try:
            fetched = await crud.get(object_id)
        except NotFound:
            logger.warning(f"{obj.label} no longer exists on the controller; needs re-creation")
            obj.forget()
            return False

        obj.known = replace(fetched, id=object_id)
        return True

    @timed("reconcile_update")
    async def update(self, obj: ManagedObject[T], desired: Optional[T] = None) -> T:
        """
        Overlay declared fields on the known state and push them.

        Fields the desired record leaves as None keep their known values.
        An object adopted by id and not yet read is read first.

        Args:
            obj: Managed object to update
            desired: New desired state; replaces ``obj.desired`` when given

        Raises:
            IdentityError: If the object is not managed
            NotFound: If the object no longer exists (it becomes unmanaged)
        """
        object_id = self._require_managed(obj, "update")
        if desired is not None:
            obj.desired = desired

        declared = self.resolver.resolve(obj.desired)
        crud = self._crud(declared)

        # Adopted by id and never read: hydrate before merging
        if not obj.known.to_payload():  # type: ignore[union-attr]
            if not await self.read(obj):
                raise NotFound("GET", crud.object_path(object_id))

        merged = obj.known.overlay(declared)  # type: ignore[union-attr]

        try:
            updated = await crud.update(merged)
        except ControllerError as e:
            # Remote state is whatever the controller left; caller re-reads
            self._audit(merged, "update", object_id, False, error=str(e))
            raise

        obj.known = replace(updated, id=object_id)
        self._audit(merged, "update", object_id, True)
        return obj.known

    @timed("reconcile_delete")
    async def delete(self, obj: ManagedObject[T]) -> None:
        """
        Delete the object remotely and forget it locally.

        The object is forgotten whatever the outcome; errors other than
        NotFound (already handled as success) are still raised.
        """
        object_id = self._require_managed(obj, "delete")
        crud = self._crud(obj.desired)
        record = obj.known

        try:
            await crud.delete(object_id)
        except ControllerError as e:
            self._audit(record, "delete", object_id, False, error=str(e))
            raise
        finally:
            obj.forget()

        self._audit(record, "delete", object_id, True)

    async def apply(self, obj: ManagedObject[T], dry_run: bool = False) -> ReconcileResult:
        """
        Bring the controller in line with the object's desired state.

        ENSURE: create when unmanaged (or gone), otherwise read and update
        when declared fields drifted. ABSENT: delete when managed.

        Controller errors are reported in the result, not raised.

        Args:
            obj: Managed object to reconcile
            dry_run: If True, compute the change without mutating anything

        Returns:
            ReconcileResult with success/failure and details
        """
        result = ReconcileResult(label=obj.label, dry_run=dry_run)

        try:
            diff = await self.plan(obj)
            result.action = diff.change_type

            if diff.no_change:
                result.success = True
                result.object_id = obj.id
                result.changes_made = ["No changes needed - state already matches"]
                return result

            if dry_run:
                result.success = True
                result.object_id = obj.id
                result.changes_made = [f"[PREVIEW] {c}" for c in describe_changes(diff)]
                return result

            if diff.change_type == ChangeType.CREATE:
                await self.create(obj)
            elif diff.change_type == ChangeType.MODIFY:
                await self.update(obj)
            elif diff.change_type == ChangeType.DELETE:
                await self.delete(obj)

            result.object_id = obj.id
            result.label = obj.label
            result.changes_made = describe_changes(diff)
            result.success = True

        except ControllerError as e:
            logger.error(f"Reconciling {obj.label} failed: {e}")
            result.success = False
            result.error = str(e)
            result.error_type = type(e).__name__
            result.retryable = bool(e.retryable)

        return result

    async def plan(self, obj: ManagedObject[T]) -> DiffResult:
        """
        Work out what ``apply`` would do, refreshing known state first.

        Reading is the only remote call made; a NotFound turns the object
        unmanaged and the plan into a create.
        """
        desired = self.resolver.resolve(obj.desired)

        if obj.is_managed:
            await self.read(obj)

        if obj.action == Action.ABSENT:
            if obj.known is None:
                return DiffResult(label=obj.label, change_type=ChangeType.NO_CHANGE)
            return self.diff_engine.deletion(obj.known)

        return self.diff_engine.calculate(desired, obj.known)

    def _require_managed(self, obj: ManagedObject, operation: str) -> int:
        if not obj.is_managed or obj.id is None:
            raise IdentityError(f"Cannot {operation} {obj.label}: object is not managed")
        return obj.id

    def _audit(
        self,
        record: Optional[Resource],
        operation: str,
        object_id: Optional[int],
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        if record is None:
            return
        self.tracker.log_change(
            resource=record.KIND,
            operation=operation,
            object_id=object_id,
            success=success,
            parameters=record.redacted(),
            error=error,
        )
