"""CRUD executor: one logical operation for one resource type.

Each ResourceClient maps get/create/update/delete for a resource class onto
the controller's collection (``/{collection}/``) and object
(``/{collection}/{id}/``) addresses, and hydrates responses into records.
"""
import json
import logging
from typing import Any, Generic, Optional, TypeVar

from ..errors import DecodeError, IdentityError, MissingRequiredFields, NotFound
from ..resources.schema import (
    RESOURCE_TYPES,
    Resource,
    Organization,
    Inventory,
    Project,
    Credential,
    CredentialType,
    JobTemplate,
    InventorySource,
    InventoryScript,
)
from .transport import ControllerTransport

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Resource)


class ResourceClient(Generic[T]):
    """CRUD operations for one resource type."""

    def __init__(self, transport: ControllerTransport, resource_class: type[T]):
        self.transport = transport
        self.resource_class = resource_class

    @property
    def collection_path(self) -> str:
        return f"/{self.resource_class.COLLECTION}/"

    def object_path(self, object_id: int) -> str:
        return f"/{self.resource_class.COLLECTION}/{object_id}/"

    async def get(self, object_id: int) -> T:
        """
        Fetch one object.

        Raises:
            NotFound: If the controller has no such object
            RemoteError: Any other non-2xx status
            DecodeError: If the body is not a valid object
        """
        self._require_identity(object_id, "get")
        path = self.object_path(object_id)
        raw = await self.transport.execute("GET", path)
        return self._decode("GET", path, raw)

    async def create(self, record: T) -> T:
        """
        Create an object from a record that has no identity yet.

        Returns:
            A fresh record hydrated from the response, including the new id

        Raises:
            IdentityError: If the record already has an id
            MissingRequiredFields: If required fields are absent
            ValidationError: If the controller rejects the payload (400)
        """
        if record.id is not None:
            raise IdentityError(
                f"Cannot create {record.label}: it already has an id"
            )
        self._check_required(record)

        path = self.collection_path
        logger.info(f"Creating {record.label}")
        logger.debug(f"POST {path} body={record.redacted()}")
        raw = await self.transport.execute("POST", path, record.to_payload())
        created = self._decode("POST", path, raw)

        if created.id is None:
            raise DecodeError("POST", path, _text(raw), "response has no id")
        logger.info(f"Created {created.label}")
        return created

    async def update(self, record: T) -> T:
        """
        PATCH an existing object with every present field of the record.

        Raises:
            IdentityError: If the record has no id
            MissingRequiredFields: If required fields are absent
        """
        self._require_identity(record.id, "update")
        self._check_required(record)

        path = self.object_path(record.id)  # type: ignore[arg-type]
        logger.info(f"Updating {record.label}")
        logger.debug(f"PATCH {path} body={record.redacted()}")
        raw = await self.transport.execute("PATCH", path, record.to_payload())
        return self._decode("PATCH", path, raw)

    async def delete(self, object_id: int) -> None:
        """
        Delete an object.

        A 404 counts as success so that repeating a delete against an object
        that is already gone is harmless.
        """
        self._require_identity(object_id, "delete")
        path = self.object_path(object_id)
        try:
            await self.transport.execute("DELETE", path)
        except NotFound:
            logger.debug(f"{self.resource_class.KIND} #{object_id} already absent")
            return
        logger.info(f"Deleted {self.resource_class.KIND} #{object_id}")

    def _require_identity(self, object_id: Optional[int], operation: str) -> None:
        valid = (
            isinstance(object_id, int)
            and not isinstance(object_id, bool)
            and object_id > 0
        )
        if not valid:
            raise IdentityError(
                f"Cannot {operation} {self.resource_class.KIND}: "
                f"invalid or missing id {object_id!r}"
            )

    def _check_required(self, record: T) -> None:
        missing = record.missing_required()
        if missing:
            raise MissingRequiredFields(record.KIND, missing)

    def _decode(self, method: str, path: str, raw: bytes) -> T:
        text = _text(raw)
        try:
            data: Any = json.loads(text)
        except ValueError as e:
            raise DecodeError(method, path, text, f"invalid JSON: {e}") from e

        try:
            return self.resource_class.from_payload(data)
        except (TypeError, ValueError) as e:
            raise DecodeError(method, path, text, str(e)) from e


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class ControllerClient:
    """One ResourceClient per managed resource type, sharing a transport."""

    def __init__(self, transport: ControllerTransport):
        self.transport = transport
        self._clients: dict[type[Resource], ResourceClient] = {
            cls: ResourceClient(transport, cls) for cls in RESOURCE_TYPES.values()
        }

    def for_type(self, resource_class: type[T]) -> ResourceClient[T]:
        """Get the client for a resource class."""
        try:
            return self._clients[resource_class]
        except KeyError:
            raise ValueError(f"Unknown resource type: {resource_class!r}") from None

    @property
    def organizations(self) -> ResourceClient[Organization]:
        return self.for_type(Organization)

    @property
    def inventories(self) -> ResourceClient[Inventory]:
        return self.for_type(Inventory)

    @property
    def projects(self) -> ResourceClient[Project]:
        return self.for_type(Project)

    @property
    def credentials(self) -> ResourceClient[Credential]:
        return self.for_type(Credential)

    @property
    def credential_types(self) -> ResourceClient[CredentialType]:
        return self.for_type(CredentialType)

    @property
    def job_templates(self) -> ResourceClient[JobTemplate]:
        return self.for_type(JobTemplate)

    @property
    def inventory_sources(self) -> ResourceClient[InventorySource]:
        return self.for_type(InventorySource)

    @property
    def inventory_scripts(self) -> ResourceClient[InventoryScript]:
        return self.for_type(InventoryScript)
