from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def coerce_str(value: Any) -> str:
    """Loose string coercion for client and persisted JSON values.

    Missing, empty and structured values become "".
    """
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return ""


class Link(BaseModel):
    id: str
    title: str
    url: str
    icon: str = ""


class Category(BaseModel):
    id: str
    name: str
    links: List[Link] = Field(default_factory=list)


class LinkTree(BaseModel):
    categories: List[Category] = Field(default_factory=list)

    def find_link(self, link_id: str):
        """Return (category, link) for link_id, or None."""
        for category in self.categories:
            for link in category.links:
                if link.id == link_id:
                    return category, link
        return None

    def find_category(self, category_id: str) -> Category | None:
        return next((c for c in self.categories if c.id == category_id), None)


class AuthRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: str
    pass_hash: str = Field(default="", alias="passHash")
    force_change: bool = Field(default=True, alias="forceChange")


class SessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: str = Field(alias="u")
    must_change: bool = Field(default=False, alias="mc")
    expires_at_ms: int = Field(alias="exp")
    nonce: str = Field(alias="n")


class SessionCheck(BaseModel):
    valid: bool
    user: str = ""
    must_change: bool = False


class PatchCategory(BaseModel):
    id: str = ""
    links: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return coerce_str(value)

    @field_validator("links", mode="before")
    @classmethod
    def _coerce_links(cls, value: Any) -> List[str]:
        # the dashboard sends [{"id": ...}], older clients send bare ids
        if not isinstance(value, list):
            return []
        ids = []
        for item in value:
            ids.append(coerce_str(item.get("id") if isinstance(item, dict) else item))
        return ids


class ReorderPatch(BaseModel):
    categories: List[PatchCategory] = Field(default_factory=list)

    @field_validator("categories", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [c for c in value if isinstance(c, dict)]


# Request bodies. Every field is a string; anything missing or malformed
# arrives as "" and is rejected by the store's own validation.


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _coerce_fields(cls, data: Any) -> dict:
        if not isinstance(data, dict):
            return {}
        return {k: coerce_str(v) for k, v in data.items()}


class LinkCreateIn(ApiModel):
    category_id: str = ""
    category_name: str = ""
    title: str = ""
    url: str = ""
    icon: str = ""


class LinkUpdateIn(ApiModel):
    link_id: str = ""
    title: str = ""
    url: str = ""
    icon: str = ""
    move_to_category_id: str = ""


class LinkDeleteIn(ApiModel):
    link_id: str = ""


class CategoryRenameIn(ApiModel):
    category_id: str = ""
    new_name: str = ""


class PasswordChangeIn(ApiModel):
    old_pass: str = ""
    new_pass: str = ""
