"""Pydantic models describing Google Business Profile payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class GoogleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AccountPayload(GoogleBaseModel):
    name: str | None = None
    account_name: str | None = Field(default=None, alias="accountName")
    type: str | None = None

    _normalize = field_validator("name", "account_name", mode="before")(_blank_to_none)


class AccountsResponse(GoogleBaseModel):
    accounts: list[AccountPayload] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class LocationMetadata(GoogleBaseModel):
    place_id: str | None = Field(default=None, alias="placeId")
    maps_uri: str | None = Field(default=None, alias="mapsUri")
    new_review_uri: str | None = Field(default=None, alias="newReviewUri")


class LocationPayload(GoogleBaseModel):
    name: str | None = None
    title: str | None = None
    metadata: LocationMetadata = Field(default_factory=LocationMetadata)

    _normalize = field_validator("name", "title", mode="before")(_blank_to_none)


class LocationsResponse(GoogleBaseModel):
    locations: list[LocationPayload] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class ReviewerPayload(GoogleBaseModel):
    display_name: str | None = Field(default=None, alias="displayName")

    _normalize = field_validator("display_name", mode="before")(_blank_to_none)


class ReviewPayload(GoogleBaseModel):
    review_id: str = Field(alias="reviewId")
    reviewer: ReviewerPayload = Field(default_factory=ReviewerPayload)
    star_rating: str | None = Field(default=None, alias="starRating")
    comment: str | None = None
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")

    _normalize = field_validator(
        "star_rating", "comment", "create_time", "update_time", mode="before"
    )(_blank_to_none)


class ReviewsResponse(GoogleBaseModel):
    reviews: list[ReviewPayload] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")
    average_rating: float | None = Field(default=None, alias="averageRating")
    total_review_count: int | None = Field(default=None, alias="totalReviewCount")

    _normalize = field_validator("next_page_token", mode="before")(_blank_to_none)
