from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BoardMemberIn(BaseModel):
    name: str = Field(min_length=1)
    designation: str = Field(min_length=1)
    quote: str = Field(min_length=1)
    src: str = Field(min_length=1)


class BoardMemberUpdate(BaseModel):
    name: Optional[str] = None
    designation: Optional[str] = None
    quote: Optional[str] = None
    src: Optional[str] = None


class BoardMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    designation: str
    quote: str
    src: str
    order: int
    created_at: Optional[datetime] = None


class SupporterIn(BaseModel):
    name: str = Field(min_length=1)
    title: str = Field(min_length=1)
    photo: Optional[str] = None


class SupporterUpdate(BaseModel):
    name: Optional[str] = None
    title: Optional[str] = None
    photo: Optional[str] = None


class SupporterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    title: str
    photo: Optional[str] = None
    order: int


class ReorderItem(BaseModel):
    id: int
    order: int


class ReorderIn(BaseModel):
    items: List[ReorderItem] = Field(default_factory=list)
