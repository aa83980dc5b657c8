from typing import List, Optional

from pydantic import BaseModel, Field

from conquest.models.schema_models import (
    GachaItemMasterSchema,
    GachaMasterSchema,
    UserCardSchema,
    UserDeckSchema,
    UserDeviceSchema,
    UserItemSchema,
    UserLoginBonusSchema,
    UserPresentSchema,
    UserSchema,
)


# ==== Requests ================================================================


class CreateUserRequest(BaseModel):
    viewer_id: str = Field(min_length=1)
    platform_type: int = Field(ge=1, le=3)


class LoginRequest(BaseModel):
    viewer_id: str
    user_id: int


class DrawGachaRequest(BaseModel):
    viewer_id: str
    one_time_token: str


class ReceivePresentRequest(BaseModel):
    viewer_id: str
    present_ids: List[int]


class ConsumeItemModel(BaseModel):
    id: int  # user_items.id, not the item master id
    amount: int = Field(gt=0)


class AddExpToCardRequest(BaseModel):
    viewer_id: str
    one_time_token: str
    items: List[ConsumeItemModel]


class UpdateDeckRequest(BaseModel):
    viewer_id: str
    card_ids: List[int]


class RewardRequest(BaseModel):
    viewer_id: str


# ==== Responses ===============================================================


class UpdatedResourcesModel(BaseModel):
    """Rows mutated by an operation. ``None`` means unchanged."""

    now: int
    user: Optional[UserSchema] = None
    user_device: Optional[UserDeviceSchema] = None
    user_cards: Optional[List[UserCardSchema]] = None
    user_decks: Optional[List[UserDeckSchema]] = None
    user_items: Optional[List[UserItemSchema]] = None
    user_login_bonuses: Optional[List[UserLoginBonusSchema]] = None
    user_presents: Optional[List[UserPresentSchema]] = None


class CreateUserResponse(BaseModel):
    user_id: int
    viewer_id: str
    session_id: str
    created_at: int
    updated_resources: UpdatedResourcesModel


class LoginResponse(BaseModel):
    viewer_id: str
    session_id: str
    updated_resources: UpdatedResourcesModel


class GachaDataModel(BaseModel):
    gacha: GachaMasterSchema
    gacha_item_list: List[GachaItemMasterSchema]


class ListGachaResponse(BaseModel):
    one_time_token: str
    gachas: List[GachaDataModel]


class DrawGachaResponse(BaseModel):
    presents: List[UserPresentSchema]


class ListPresentResponse(BaseModel):
    presents: List[UserPresentSchema]
    is_next: bool


class ReceivePresentResponse(BaseModel):
    updated_resources: UpdatedResourcesModel


class ListItemResponse(BaseModel):
    one_time_token: str
    user: UserSchema
    items: List[UserItemSchema]
    cards: List[UserCardSchema]


class AddExpToCardResponse(BaseModel):
    updated_resources: UpdatedResourcesModel


class UpdateDeckResponse(BaseModel):
    updated_resources: UpdatedResourcesModel


class RewardResponse(BaseModel):
    updated_resources: UpdatedResourcesModel


class HomeResponse(BaseModel):
    now: int
    user: UserSchema
    deck: Optional[UserDeckSchema] = None
    total_amount_per_sec: int
    past_time: int


class InitializeResponse(BaseModel):
    language: str
