from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, TypeVar

from sas_crm.crm.errors import DuplicateEntityError, EntityNotFoundError, InvalidReferenceError
from sas_crm.crm.schemas import (
    Activity,
    ActivityCreate,
    ActivityUpdate,
    CamelModel,
    Client,
    ClientCreate,
    ClientUpdate,
    Deal,
    DealCreate,
    DealNote,
    DealUpdate,
    Person,
    PersonCreate,
    PersonUpdate,
    Pipeline,
    PipelineCreate,
    PipelineUpdate,
    RelatedEntityType,
    Tag,
    TagCreate,
    TagUpdate,
    User,
)
from sas_crm.db.client import DocumentClient, ItemConflictError
from sas_crm.utils import generate_id


logger = logging.getLogger("sas_crm.crm")

ModelT = TypeVar("ModelT", bound=CamelModel)

RELATED_ENTITY_TABLES: dict[RelatedEntityType, str] = {
    "Deal": "Deals",
    "Client": "Clients",
    "Person": "People",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class CrmService:
    """Tenant-scoped lifecycle operations over the CRM tables.

    Every read and write is keyed by the owning ``user_id``. Lookups through
    secondary indexes that are not partitioned by tenant are filtered to the
    tenant before being returned.
    """

    def __init__(self, client: DocumentClient) -> None:
        self.client = client

    # Users

    def create_user(self, email: str, name: str | None = None) -> User:
        normalized_email = _normalize_email(email)
        if self.client.query_index("Users", "emailIndex", normalized_email):
            raise DuplicateEntityError("User", "email", normalized_email)

        now = utcnow()
        user = User(id=generate_id(), email=normalized_email, name=name, created_at=now, updated_at=now)
        try:
            self.client.put_item("Users", user.to_item(), if_not_exists=True)
        except ItemConflictError as exc:
            raise DuplicateEntityError("User", "email", normalized_email) from exc
        self._log_write("crm.entity.created", user.id, "User", user.id)
        return user

    def get_user(self, user_id: str) -> User:
        item = self.client.get_item("Users", {"id": user_id})
        if item is None:
            raise EntityNotFoundError("User", user_id)
        return User.model_validate(item)

    # People

    def create_person(self, user_id: str, dto: PersonCreate, actor_id: str | None = None) -> Person:
        if dto.client_id is not None:
            self._require_reference(user_id, "Clients", dto.client_id, "Person", "clientId")
        now = utcnow()
        person = Person(
            **{**dto.model_dump(), "email": _normalize_email(dto.email)},
            id=generate_id(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            created_by=actor_id or user_id,
        )
        self.client.put_item("People", person.to_item(), if_not_exists=True)
        self._log_write("crm.entity.created", user_id, "Person", person.id)
        return person

    def update_person(self, user_id: str, person_id: str, dto: PersonUpdate) -> Person:
        current = self.get_person(user_id, person_id)
        changes = dto.model_dump(exclude_unset=True)
        if changes.get("client_id") is not None:
            self._require_reference(user_id, "Clients", changes["client_id"], "Person", "clientId")
        if changes.get("email") is not None:
            changes["email"] = _normalize_email(changes["email"])
        person = self._apply_update(Person, current, changes)
        self.client.put_item("People", person.to_item())
        self._log_write("crm.entity.updated", user_id, "Person", person_id)
        return person

    def get_person(self, user_id: str, person_id: str) -> Person:
        return self._get("People", Person, "Person", user_id, person_id)

    def list_people(self, user_id: str) -> list[Person]:
        return [Person.model_validate(item) for item in self.client.query("People", user_id)]

    def find_people_by_email(self, user_id: str, email: str) -> list[Person]:
        return self._by_index("People", Person, "emailIndex", user_id, _normalize_email(email))

    def list_client_stakeholders(self, user_id: str, client_id: str) -> list[Person]:
        return self._by_index("People", Person, "clientStakeholdersIndex", user_id, client_id)

    # Clients

    def create_client(self, user_id: str, dto: ClientCreate, actor_id: str | None = None) -> Client:
        now = utcnow()
        client = Client(
            **dto.model_dump(),
            id=generate_id(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            created_by=actor_id or user_id,
        )
        self.client.put_item("Clients", client.to_item(), if_not_exists=True)
        self._log_write("crm.entity.created", user_id, "Client", client.id)
        return client

    def update_client(self, user_id: str, client_id: str, dto: ClientUpdate) -> Client:
        current = self.get_client(user_id, client_id)
        client = self._apply_update(Client, current, dto.model_dump(exclude_unset=True))
        self.client.put_item("Clients", client.to_item())
        self._log_write("crm.entity.updated", user_id, "Client", client_id)
        return client

    def get_client(self, user_id: str, client_id: str) -> Client:
        return self._get("Clients", Client, "Client", user_id, client_id)

    def list_clients(self, user_id: str) -> list[Client]:
        return [Client.model_validate(item) for item in self.client.query("Clients", user_id)]

    # Deals

    def create_deal(self, user_id: str, dto: DealCreate, actor_id: str | None = None) -> Deal:
        self._check_deal_references(user_id, dto)
        now = utcnow()
        deal = Deal(
            **dto.model_dump(),
            id=generate_id(),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            created_by=actor_id or user_id,
        )
        self.client.put_item("Deals", deal.to_item(), if_not_exists=True)
        self._log_write("crm.entity.created", user_id, "Deal", deal.id)
        return deal

    def update_deal(self, user_id: str, deal_id: str, dto: DealUpdate) -> Deal:
        current = self.get_deal(user_id, deal_id)
        deal = self._apply_update(Deal, current, dto.model_dump(exclude_unset=True))
        self._check_deal_references(user_id, deal)
        self.client.put_item("Deals", deal.to_item())
        self._log_write("crm.entity.updated", user_id, "Deal", deal_id)
        return deal

    def add_deal_note(self, user_id: str, deal_id: str, content: str, actor_id: str | None = None) -> Deal:
        current = self.get_deal(user_id, deal_id)
        note = DealNote(id=generate_id(), content=content, created_at=utcnow(), created_by=actor_id or user_id)
        notes = [*(current.notes or []), note]
        deal = self._apply_update(Deal, current, {"notes": [item.model_dump() for item in notes]})
        self.client.put_item("Deals", deal.to_item())
        self._log_write("crm.entity.updated", user_id, "Deal", deal_id)
        return deal

    def get_deal(self, user_id: str, deal_id: str) -> Deal:
        return self._get("Deals", Deal, "Deal", user_id, deal_id)

    def list_deals(self, user_id: str) -> list[Deal]:
        return [Deal.model_validate(item) for item in self.client.query("Deals", user_id)]

    def list_deals_for_client(self, user_id: str, client_id: str) -> list[Deal]:
        return self._by_index("Deals", Deal, "clientIndex", user_id, client_id)

    def list_deals_by_owner(self, user_id: str, owner_id: str) -> list[Deal]:
        return self._by_index("Deals", Deal, "ownerIndex", user_id, owner_id)

    def list_deals_by_stage(self, user_id: str, stage: str) -> list[Deal]:
        return self._by_index("Deals", Deal, "stageIndex", user_id, stage)

    # Activities

    def create_activity(self, user_id: str, dto: ActivityCreate, actor_id: str | None = None) -> Activity:
        self._check_related_entity(user_id, dto.related_to.entity_type, dto.related_to.entity_id)
        activity = Activity(
            **dto.model_dump(),
            id=generate_id(),
            user_id=user_id,
            created_at=utcnow(),
            created_by=actor_id or user_id,
        )
        self.client.put_item("Activities", self._activity_item(activity), if_not_exists=True)
        self._log_write("crm.entity.created", user_id, "Activity", activity.id)
        return activity

    def update_activity(self, user_id: str, activity_id: str, dto: ActivityUpdate) -> Activity:
        current = self.get_activity(user_id, activity_id)
        changes = dto.model_dump(exclude_unset=True)
        if dto.related_to is not None:
            self._check_related_entity(user_id, dto.related_to.entity_type, dto.related_to.entity_id)
        activity = self._apply_update(Activity, current, changes)
        self.client.put_item("Activities", self._activity_item(activity))
        self._log_write("crm.entity.updated", user_id, "Activity", activity_id)
        return activity

    def get_activity(self, user_id: str, activity_id: str) -> Activity:
        return self._get("Activities", Activity, "Activity", user_id, activity_id)

    def list_activities(self, user_id: str) -> list[Activity]:
        return [Activity.model_validate(item) for item in self.client.query("Activities", user_id)]

    def list_activities_for(self, user_id: str, entity_type: RelatedEntityType, entity_id: str) -> list[Activity]:
        return self._by_index("Activities", Activity, "entityIndex", user_id, entity_type, entity_id)

    # Pipelines

    def create_pipeline(self, user_id: str, dto: PipelineCreate, actor_id: str | None = None) -> Pipeline:
        pipeline = Pipeline(
            **dto.model_dump(),
            id=generate_id(),
            user_id=user_id,
            created_at=utcnow(),
            created_by=actor_id or user_id,
        )
        self.client.put_item("Pipelines", pipeline.to_item(), if_not_exists=True)
        if pipeline.is_default:
            self._unset_other_defaults(user_id, pipeline.id)
        self._log_write("crm.entity.created", user_id, "Pipeline", pipeline.id)
        return pipeline

    def update_pipeline(self, user_id: str, pipeline_id: str, dto: PipelineUpdate) -> Pipeline:
        current = self.get_pipeline(user_id, pipeline_id)
        pipeline = self._apply_update(Pipeline, current, dto.model_dump(exclude_unset=True))
        self.client.put_item("Pipelines", pipeline.to_item())
        if pipeline.is_default:
            self._unset_other_defaults(user_id, pipeline.id)
        self._log_write("crm.entity.updated", user_id, "Pipeline", pipeline_id)
        return pipeline

    def get_pipeline(self, user_id: str, pipeline_id: str) -> Pipeline:
        return self._get("Pipelines", Pipeline, "Pipeline", user_id, pipeline_id)

    def list_pipelines(self, user_id: str) -> list[Pipeline]:
        return [Pipeline.model_validate(item) for item in self.client.query("Pipelines", user_id)]

    def get_default_pipeline(self, user_id: str) -> Pipeline | None:
        defaults = self._by_index("Pipelines", Pipeline, "defaultIndex", user_id, True)
        return defaults[0] if defaults else None

    # Tags

    def create_tag(self, user_id: str, dto: TagCreate) -> Tag:
        if self.find_tag_by_name(user_id, dto.name) is not None:
            raise DuplicateEntityError("Tag", "name", dto.name)
        tag = Tag(**dto.model_dump(), id=generate_id(), user_id=user_id, created_at=utcnow())
        self.client.put_item("Tags", tag.to_item(), if_not_exists=True)
        self._log_write("crm.entity.created", user_id, "Tag", tag.id)
        return tag

    def update_tag(self, user_id: str, tag_id: str, dto: TagUpdate) -> Tag:
        current = self.get_tag(user_id, tag_id)
        changes = dto.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            existing = self.find_tag_by_name(user_id, changes["name"])
            if existing is not None and existing.id != tag_id:
                raise DuplicateEntityError("Tag", "name", changes["name"])
        tag = self._apply_update(Tag, current, changes)
        self.client.put_item("Tags", tag.to_item())
        self._log_write("crm.entity.updated", user_id, "Tag", tag_id)
        return tag

    def get_tag(self, user_id: str, tag_id: str) -> Tag:
        return self._get("Tags", Tag, "Tag", user_id, tag_id)

    def list_tags(self, user_id: str) -> list[Tag]:
        return [Tag.model_validate(item) for item in self.client.query("Tags", user_id)]

    def find_tag_by_name(self, user_id: str, name: str) -> Tag | None:
        tags = self._by_index("Tags", Tag, "nameIndex", user_id, name)
        return tags[0] if tags else None

    # Internals

    def _get(self, table: str, model: type[ModelT], entity_type: str, user_id: str, entity_id: str) -> ModelT:
        item = self.client.get_item(table, {"userId": user_id, "id": entity_id})
        if item is None:
            raise EntityNotFoundError(entity_type, entity_id)
        return model.model_validate(item)

    def _by_index(
        self,
        table: str,
        model: type[ModelT],
        index_name: str,
        user_id: str,
        hash_value: Any,
        range_value: Any | None = None,
    ) -> list[ModelT]:
        items = self.client.query_index(table, index_name, hash_value, range_value)
        return [model.model_validate(item) for item in items if item.get("userId") == user_id]

    @staticmethod
    def _apply_update(model: type[ModelT], current: ModelT, changes: dict[str, Any]) -> ModelT:
        return model.model_validate({**current.model_dump(), **changes, "updated_at": utcnow()})

    def _require_reference(self, user_id: str, table: str, reference: str, entity_type: str, field: str) -> None:
        if self.client.get_item(table, {"userId": user_id, "id": reference}) is None:
            raise InvalidReferenceError(entity_type, field, reference)

    def _check_deal_references(self, user_id: str, deal: DealCreate) -> None:
        self._require_reference(user_id, "Clients", deal.client_id, "Deal", "clientId")

        # owner is the tenant user or one of the tenant's people
        if deal.owner_id != user_id:
            self._require_reference(user_id, "People", deal.owner_id, "Deal", "ownerId")

        pipeline_item = self.client.get_item("Pipelines", {"userId": user_id, "id": deal.pipeline})
        if pipeline_item is None:
            raise InvalidReferenceError("Deal", "pipeline", deal.pipeline)
        if deal.stage not in Pipeline.model_validate(pipeline_item).stage_names():
            raise InvalidReferenceError("Deal", "stage", deal.stage)

    def _check_related_entity(self, user_id: str, entity_type: RelatedEntityType, entity_id: str) -> None:
        self._require_reference(user_id, RELATED_ENTITY_TABLES[entity_type], entity_id, "Activity", "relatedTo")

    @staticmethod
    def _activity_item(activity: Activity) -> dict[str, Any]:
        # entityIndex is keyed on top-level attributes
        item = activity.to_item()
        item["entityType"] = activity.related_to.entity_type
        item["entityId"] = activity.related_to.entity_id
        return item

    def _unset_other_defaults(self, user_id: str, keep_pipeline_id: str) -> None:
        for other in self._by_index("Pipelines", Pipeline, "defaultIndex", user_id, True):
            if other.id == keep_pipeline_id:
                continue
            demoted = self._apply_update(Pipeline, other, {"is_default": False})
            self.client.put_item("Pipelines", demoted.to_item())
            self._log_write("crm.entity.updated", user_id, "Pipeline", other.id)

    @staticmethod
    def _log_write(message: str, user_id: str, entity_type: str, entity_id: str) -> None:
        logger.info(message, extra={"user_id": user_id, "entity_type": entity_type, "entity_id": entity_id})
