"""Tests for the Reconciler lifecycle."""
import httpx
import pytest

from aap_reconciler.client import ControllerClient, ControllerTransport
from aap_reconciler.engine import (
    Reconciler,
    Action,
    ChangeType,
    ManagedObject,
    ObjectState,
)
from aap_reconciler.errors import (
    IdentityError,
    InvalidReference,
    NotFound,
    RemoteError,
    TransportError,
)
from aap_reconciler.resources import (
    ENCRYPTED,
    Credential,
    CredentialType,
    Inventory,
    JobTemplate,
    Organization,
    machine_credential,
)


class TestCreate:
    """Tests for Reconciler.create."""

    @pytest.mark.asyncio
    async def test_create_then_read(self, reconciler):
        """Reading right after a create yields the same known state."""
        obj = ManagedObject(Organization(name="Test Org", max_hosts=10))

        created = await reconciler.create(obj)
        assert obj.is_managed
        assert obj.id == created.id
        after_create = obj.known

        assert await reconciler.read(obj)
        assert obj.known == after_create

    @pytest.mark.asyncio
    async def test_string_references_resolved(self, reconciler, controller):
        obj = ManagedObject(Inventory(name="web", organization="1"))
        await reconciler.create(obj)
        assert controller.bodies("POST") == [{"name": "web", "organization": 1}]
        assert obj.known.organization == 1

    @pytest.mark.asyncio
    async def test_invalid_reference_no_request(self, reconciler, controller):
        obj = ManagedObject(Inventory(name="web", organization="Default"))
        with pytest.raises(InvalidReference):
            await reconciler.create(obj)
        assert controller.requests == []
        assert not obj.is_managed

    @pytest.mark.asyncio
    async def test_create_twice_rejected(self, reconciler):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        with pytest.raises(IdentityError):
            await reconciler.create(obj)

    @pytest.mark.asyncio
    async def test_failed_create_stays_unmanaged(self, reconciler, controller):
        controller.fail("POST", "/organizations/", 500, "Internal Server Error")
        obj = ManagedObject(Organization(name="Default"))
        with pytest.raises(RemoteError):
            await reconciler.create(obj)
        assert obj.state == ObjectState.UNMANAGED
        assert obj.known is None

    @pytest.mark.asyncio
    async def test_create_is_audited(self, reconciler):
        obj = ManagedObject(machine_credential("ssh", 1, username="deploy", password="hunter2"))
        await reconciler.create(obj)
        record = reconciler.tracker.records[-1]
        assert record.operation == "create"
        assert record.resource == "credential"
        assert record.object_id == obj.id
        assert record.success
        assert "hunter2" not in record.to_json()


class TestRead:
    """Tests for Reconciler.read."""

    @pytest.mark.asyncio
    async def test_read_picks_up_remote_changes(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.store("organizations")[obj.id]["description"] = "edited in the UI"

        assert await reconciler.read(obj)
        assert obj.known.description == "edited in the UI"

    @pytest.mark.asyncio
    async def test_read_vanished_object(self, reconciler, controller):
        """An object deleted behind our back becomes unmanaged."""
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.store("organizations").clear()

        assert await reconciler.read(obj) is False
        assert not obj.is_managed
        assert obj.id is None

    @pytest.mark.asyncio
    async def test_read_other_errors_raise(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.fail("GET", f"/organizations/{obj.id}/", 503, "unavailable")

        with pytest.raises(RemoteError):
            await reconciler.read(obj)
        assert obj.is_managed

    @pytest.mark.asyncio
    async def test_read_unmanaged(self, reconciler):
        with pytest.raises(IdentityError):
            await reconciler.read(ManagedObject(Organization(name="Default")))

    @pytest.mark.asyncio
    async def test_adopt_by_id(self, reconciler, controller):
        """Adopted objects hydrate fully on first read."""
        object_id = controller.seed("organizations", name="Default", description="", max_hosts=0)
        obj = ManagedObject.adopt(Organization(name="Default"), object_id)

        assert await reconciler.read(obj)
        assert obj.known == Organization(name="Default", description="", max_hosts=0, id=object_id)


class TestUpdate:
    """Tests for Reconciler.update."""

    @pytest.mark.asyncio
    async def test_update_overlays_known(self, reconciler, controller):
        """Undeclared fields keep their known values."""
        obj = ManagedObject(Organization(name="Test Org", max_hosts=10))
        await reconciler.create(obj)

        await reconciler.update(obj, Organization(description="Updated"))
        assert await reconciler.read(obj)
        assert obj.known.name == "Test Org"
        assert obj.known.max_hosts == 10
        assert obj.known.description == "Updated"

    @pytest.mark.asyncio
    async def test_update_sends_merged_record(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)

        await reconciler.update(obj, Organization(max_hosts=5))
        assert controller.bodies("PATCH") == [
            {"name": "Default", "description": "", "max_hosts": 5}
        ]

    @pytest.mark.asyncio
    async def test_update_job_template_reference(self, reconciler, controller):
        obj = ManagedObject(JobTemplate(
            name="Deploy", job_type="run", inventory=1, project=2, playbook="site.yml",
        ))
        await reconciler.create(obj)

        await reconciler.update(obj, JobTemplate(inventory="9"))
        assert obj.known.inventory == 9
        assert obj.known.project == 2

    @pytest.mark.asyncio
    async def test_update_keeps_secret_inputs(self, reconciler, controller):
        """Changing one input does not wipe the others."""
        obj = ManagedObject(machine_credential("ssh", 1, username="deploy", password="hunter2"))
        await reconciler.create(obj)

        await reconciler.update(obj, Credential(inputs={"username": "ops"}))
        stored = controller.store("credentials")[obj.id]
        assert stored["inputs"]["username"] == "ops"
        assert obj.known.inputs["password"] == ENCRYPTED

    @pytest.mark.asyncio
    async def test_update_replaces_credential_type_inputs(self, reconciler, controller):
        """Keys dropped from a credential type's inputs are removed remotely."""
        obj = ManagedObject(CredentialType(
            name="ct", kind="cloud",
            inputs={"fields": [{"id": "a"}], "required": ["a"]},
        ))
        await reconciler.create(obj)

        await reconciler.update(obj, CredentialType(inputs={"fields": [{"id": "b"}]}))
        assert controller.store("credential_types")[obj.id]["inputs"] == {"fields": [{"id": "b"}]}
        assert obj.known.inputs == {"fields": [{"id": "b"}]}
        assert obj.known.name == "ct"

    @pytest.mark.asyncio
    async def test_update_adopted_reads_first(self, reconciler, controller):
        """An object adopted by id can be updated before any read."""
        object_id = controller.seed("organizations", name="Default", description="", max_hosts=0)
        obj = ManagedObject.adopt(Organization(description="Main"), object_id)

        await reconciler.update(obj)
        assert [r.method for r in controller.requests] == ["GET", "PATCH"]
        assert controller.bodies("PATCH") == [
            {"name": "Default", "description": "Main", "max_hosts": 0}
        ]
        assert obj.known == Organization(
            name="Default", description="Main", max_hosts=0, id=object_id,
        )

    @pytest.mark.asyncio
    async def test_update_adopted_missing(self, reconciler, controller):
        obj = ManagedObject.adopt(Organization(description="Main"), 404)

        with pytest.raises(NotFound):
            await reconciler.update(obj)
        assert not obj.is_managed
        assert controller.bodies("PATCH") == []

    @pytest.mark.asyncio
    async def test_update_unmanaged(self, reconciler):
        with pytest.raises(IdentityError):
            await reconciler.update(ManagedObject(Organization(name="Default")))

    @pytest.mark.asyncio
    async def test_failed_update_keeps_identity(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        object_id = obj.id
        controller.fail("PATCH", f"/organizations/{object_id}/", 400, '{"max_hosts": ["invalid"]}')

        with pytest.raises(RemoteError):
            await reconciler.update(obj, Organization(max_hosts=-1))
        assert obj.id == object_id
        assert reconciler.tracker.records[-1].success is False


class TestDelete:
    """Tests for Reconciler.delete."""

    @pytest.mark.asyncio
    async def test_delete_forgets(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)

        await reconciler.delete(obj)
        assert not obj.is_managed
        assert controller.store("organizations") == {}

    @pytest.mark.asyncio
    async def test_delete_already_gone(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.store("organizations").clear()

        await reconciler.delete(obj)
        assert not obj.is_managed

    @pytest.mark.asyncio
    async def test_delete_failure_still_forgets(self, reconciler, controller):
        """The error propagates but the object is no longer tracked."""
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.fail("DELETE", f"/organizations/{obj.id}/", 409, "in use")

        with pytest.raises(RemoteError):
            await reconciler.delete(obj)
        assert not obj.is_managed

    @pytest.mark.asyncio
    async def test_delete_unmanaged(self, reconciler):
        with pytest.raises(IdentityError):
            await reconciler.delete(ManagedObject(Organization(name="Default")))


class TestApply:
    """Tests for Reconciler.apply."""

    @pytest.mark.asyncio
    async def test_apply_creates(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        result = await reconciler.apply(obj)

        assert result.success
        assert result.action == ChangeType.CREATE
        assert result.object_id == obj.id
        assert len(controller.store("organizations")) == 1

    @pytest.mark.asyncio
    async def test_apply_no_change(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default", max_hosts=10))
        await reconciler.apply(obj)

        result = await reconciler.apply(obj)
        assert result.success
        assert result.action == ChangeType.NO_CHANGE
        assert controller.bodies("PATCH") == []

    @pytest.mark.asyncio
    async def test_apply_modifies_drift(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default", max_hosts=10))
        await reconciler.apply(obj)
        controller.store("organizations")[obj.id]["max_hosts"] = 50

        result = await reconciler.apply(obj)
        assert result.action == ChangeType.MODIFY
        assert "max_hosts" in result.changes_made[0]
        assert controller.store("organizations")[obj.id]["max_hosts"] == 10

    @pytest.mark.asyncio
    async def test_apply_recreates_vanished(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.apply(obj)
        old_id = obj.id
        controller.store("organizations").clear()

        result = await reconciler.apply(obj)
        assert result.action == ChangeType.CREATE
        assert obj.id != old_id

    @pytest.mark.asyncio
    async def test_apply_encrypted_inputs_match(self, reconciler, controller):
        """Secrets the controller hides do not count as drift."""
        obj = ManagedObject(machine_credential("ssh", 1, username="deploy", password="hunter2"))
        await reconciler.apply(obj)

        result = await reconciler.apply(obj)
        assert result.action == ChangeType.NO_CHANGE

    @pytest.mark.asyncio
    async def test_dry_run(self, reconciler, controller):
        obj = ManagedObject(Organization(name="Default"))
        result = await reconciler.apply(obj, dry_run=True)

        assert result.success
        assert result.dry_run
        assert result.action == ChangeType.CREATE
        assert result.changes_made[0].startswith("[PREVIEW]")
        assert controller.requests == []
        assert not obj.is_managed

    @pytest.mark.asyncio
    async def test_apply_absent(self, reconciler, controller):
        object_id = controller.seed("organizations", name="Old")
        obj = ManagedObject.adopt(Organization(name="Old"), object_id, action=Action.ABSENT)

        result = await reconciler.apply(obj)
        assert result.action == ChangeType.DELETE
        assert controller.store("organizations") == {}
        assert not obj.is_managed

        again = await reconciler.apply(obj)
        assert again.action == ChangeType.NO_CHANGE

    @pytest.mark.asyncio
    async def test_apply_reports_errors(self, reconciler, controller):
        controller.fail("POST", "/organizations/", 400, '{"name": ["taken"]}')
        obj = ManagedObject(Organization(name="Default"))

        result = await reconciler.apply(obj)
        assert not result.success
        assert result.error_type == "ValidationError"
        assert '{"name": ["taken"]}' in result.error
        assert result.retryable is False
        assert result.to_dict()["error_type"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_apply_reports_transport_failure(self, config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = ControllerTransport(config, http_transport=httpx.MockTransport(handler))
        reconciler = Reconciler(ControllerClient(transport))

        result = await reconciler.apply(ManagedObject(Organization(name="Default")))
        assert not result.success
        assert result.error_type == TransportError.__name__
        assert result.retryable

    @pytest.mark.asyncio
    async def test_not_found_during_update(self, reconciler, controller):
        """An object vanishing mid-update raises NotFound from update."""
        obj = ManagedObject(Organization(name="Default"))
        await reconciler.create(obj)
        controller.store("organizations").clear()

        with pytest.raises(NotFound):
            await reconciler.update(obj, Organization(description="x"))
