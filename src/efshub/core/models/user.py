"""Filesystem user request/response models."""

from datetime import datetime

from pydantic import BaseModel

from efshub.core.tags import Tag


class FileSystemUserCreateRequest(BaseModel):
    user_name: str = ""


class FileSystemUserUpdateRequest(BaseModel):
    reset_key: bool = False
    tags: list[Tag] | None = None


class AccessKeyMetadata(BaseModel):
    access_key_id: str
    status: str = ""
    create_date: datetime | None = None


class AccessKey(BaseModel):
    """A newly issued access key; the secret is only ever returned once."""

    access_key_id: str
    secret_access_key: str
    status: str = ""
    create_date: datetime | None = None


class FileSystemUserResponse(BaseModel):
    user_name: str
    access_keys: list[AccessKeyMetadata] | None = None
    access_key: AccessKey | None = None
    deleted_access_keys: list[str] | None = None
    groups: list[str] | None = None
    tags: list[Tag] = []
