"""Declarative description of the storage, bucket and web resources.

Nothing in this module talks to AWS. The declarations are rendered by
``sas_crm.db.schema`` into SQLAlchemy tables and, through
``TableDefinition.to_create_table_params``, into the DynamoDB CreateTable shape.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

FieldType = Literal["string", "number"]

PRODUCTION_STAGE = "production"
PRODUCTION_AUTH_URL = "https://your-production-domain.com"
LOCAL_AUTH_URL = "http://localhost:3000"

_DYNAMO_ATTRIBUTE_TYPES = {"string": "S", "number": "N"}


@dataclass(frozen=True)
class IndexDefinition:
    hash_key: str
    range_key: str | None = None
    unique: bool = False

    @property
    def key_fields(self) -> tuple[str, ...]:
        if self.range_key is None:
            return (self.hash_key,)
        return (self.hash_key, self.range_key)

    def key_schema(self) -> list[dict[str, str]]:
        schema = [{"AttributeName": self.hash_key, "KeyType": "HASH"}]
        if self.range_key is not None:
            schema.append({"AttributeName": self.range_key, "KeyType": "RANGE"})
        return schema


@dataclass(frozen=True)
class TableDefinition:
    key: str
    fields: Mapping[str, FieldType]
    primary_index: IndexDefinition
    global_indexes: Mapping[str, IndexDefinition] = field(default_factory=dict)

    def __post_init__(self) -> None:
        indexes = {"primary": self.primary_index, **self.global_indexes}
        for index_name, index in indexes.items():
            for key_field in index.key_fields:
                if key_field not in self.fields:
                    raise ValueError(f"{self.key}.{index_name} uses undeclared field '{key_field}'")

    def to_create_table_params(self, table_name: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "TableName": table_name,
            "AttributeDefinitions": [
                {"AttributeName": name, "AttributeType": _DYNAMO_ATTRIBUTE_TYPES[field_type]}
                for name, field_type in self.fields.items()
            ],
            "KeySchema": self.primary_index.key_schema(),
            "BillingMode": "PAY_PER_REQUEST",
        }
        if self.global_indexes:
            params["GlobalSecondaryIndexes"] = [
                {
                    "IndexName": index_name,
                    "KeySchema": index.key_schema(),
                    "Projection": {"ProjectionType": "ALL"},
                }
                for index_name, index in self.global_indexes.items()
            ]
        return params


@dataclass(frozen=True)
class BucketDefinition:
    key: str
    public: bool = False


@dataclass(frozen=True)
class WebAppDefinition:
    key: str
    link: tuple[str, ...]
    environment: Mapping[str, str]


@dataclass(frozen=True)
class AppConfig:
    name: str
    removal: Literal["retain", "remove"]
    protect: bool
    home: str


USERS = TableDefinition(
    key="Users",
    fields={"id": "string", "email": "string"},
    primary_index=IndexDefinition("id"),
    global_indexes={"emailIndex": IndexDefinition("email", unique=True)},
)

PEOPLE = TableDefinition(
    key="People",
    fields={"userId": "string", "id": "string", "email": "string", "clientId": "string"},
    primary_index=IndexDefinition("userId", "id"),
    global_indexes={
        "emailIndex": IndexDefinition("email"),
        "clientStakeholdersIndex": IndexDefinition("clientId"),
    },
)

CLIENTS = TableDefinition(
    key="Clients",
    fields={"userId": "string", "id": "string"},
    primary_index=IndexDefinition("userId", "id"),
)

DEALS = TableDefinition(
    key="Deals",
    fields={
        "userId": "string",
        "id": "string",
        "clientId": "string",
        "ownerId": "string",
        "stage": "string",
    },
    primary_index=IndexDefinition("userId", "id"),
    global_indexes={
        "clientIndex": IndexDefinition("clientId"),
        "ownerIndex": IndexDefinition("ownerId"),
        "stageIndex": IndexDefinition("stage"),
    },
)

ACTIVITIES = TableDefinition(
    key="Activities",
    fields={
        "userId": "string",
        "id": "string",
        "entityType": "string",
        "entityId": "string",
        "scheduledDate": "string",
    },
    primary_index=IndexDefinition("userId", "id"),
    global_indexes={
        "entityIndex": IndexDefinition("entityType", "entityId"),
        "scheduledDateIndex": IndexDefinition("scheduledDate"),
    },
)

PIPELINES = TableDefinition(
    key="Pipelines",
    fields={"userId": "string", "id": "string", "isDefault": "string"},
    primary_index=IndexDefinition("userId", "id"),
    global_indexes={"defaultIndex": IndexDefinition("isDefault")},
)

TAGS = TableDefinition(
    key="Tags",
    fields={"userId": "string", "id": "string", "name": "string"},
    primary_index=IndexDefinition("userId", "id"),
    global_indexes={"nameIndex": IndexDefinition("name")},
)

# NextAuth adapter tables
SESSIONS = TableDefinition(
    key="Sessions",
    fields={"sessionToken": "string", "userId": "string"},
    primary_index=IndexDefinition("sessionToken"),
    global_indexes={"userIdIndex": IndexDefinition("userId")},
)

ACCOUNTS = TableDefinition(
    key="Accounts",
    fields={"id": "string", "userId": "string"},
    primary_index=IndexDefinition("id"),
    global_indexes={"userIdIndex": IndexDefinition("userId")},
)

VERIFICATION_TOKENS = TableDefinition(
    key="VerificationTokens",
    fields={"identifier": "string", "token": "string"},
    primary_index=IndexDefinition("identifier", "token"),
)

TABLES: tuple[TableDefinition, ...] = (
    USERS,
    PEOPLE,
    CLIENTS,
    DEALS,
    ACTIVITIES,
    PIPELINES,
    TAGS,
    SESSIONS,
    ACCOUNTS,
    VERIFICATION_TOKENS,
)

TABLES_BY_KEY: dict[str, TableDefinition] = {table.key: table for table in TABLES}

UPLOADS = BucketDefinition(key="Uploads", public=False)

# Output names for the table map returned by the deployment.
_OUTPUT_NAMES = {
    "Users": "users",
    "People": "people",
    "Clients": "clients",
    "Deals": "deals",
    "Activities": "activities",
    "Pipelines": "pipelines",
    "Tags": "tags",
    "Sessions": "sessions",
    "Accounts": "accounts",
    "VerificationTokens": "verificationTokens",
}


def app_config(stage: str | None) -> AppConfig:
    is_production = stage == PRODUCTION_STAGE
    return AppConfig(
        name="sas-crm",
        removal="retain" if is_production else "remove",
        protect=is_production,
        home="aws",
    )


def auth_url_for_stage(stage: str | None) -> str:
    return PRODUCTION_AUTH_URL if stage == PRODUCTION_STAGE else LOCAL_AUTH_URL


@dataclass(frozen=True)
class Stack:
    stage: str
    app: AppConfig
    tables: tuple[TableDefinition, ...]
    bucket: BucketDefinition
    site: WebAppDefinition

    def outputs(self, resource_names: Mapping[str, str], site_url: str | None = None) -> dict[str, Any]:
        """Build the deployment output map from provisioned resource names."""
        return {
            "site": site_url,
            "tables": {_OUTPUT_NAMES[table.key]: resource_names[table.key] for table in self.tables},
            "bucket": resource_names[self.bucket.key],
        }


def build_stack(stage: str) -> Stack:
    site = WebAppDefinition(
        key="MyWeb",
        link=tuple(table.key for table in TABLES) + (UPLOADS.key,),
        environment={"NEXTAUTH_URL": auth_url_for_stage(stage)},
    )
    return Stack(stage=stage, app=app_config(stage), tables=TABLES, bucket=UPLOADS, site=site)
