from enum import IntEnum

from pydantic import BaseModel


class ItemType(IntEnum):
    COIN = 1
    CARD = 2
    EXP_MATERIAL = 3
    STACKABLE_ITEM = 4


class TokenType(IntEnum):
    GACHA = 1
    CARD_EXP = 2


# ==== Per-user rows ===========================================================


class UserSchema(BaseModel):
    id: int
    coin: int
    last_getreward_at: int
    last_activated_at: int
    registered_at: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserDeviceSchema(BaseModel):
    id: int
    user_id: int
    platform_id: str
    platform_type: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserCardSchema(BaseModel):
    id: int
    user_id: int
    card_id: int
    amount_per_sec: int
    level: int
    total_exp: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserDeckSchema(BaseModel):
    id: int
    user_id: int
    user_card_id_1: int
    user_card_id_2: int
    user_card_id_3: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserItemSchema(BaseModel):
    id: int
    user_id: int
    item_type: int
    item_id: int
    amount: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserPresentSchema(BaseModel):
    id: int
    user_id: int
    sent_at: int
    item_type: int
    item_id: int
    amount: int
    present_message: str | None = None
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserLoginBonusSchema(BaseModel):
    id: int
    user_id: int
    login_bonus_id: int
    last_reward_sequence: int
    loop_count: int
    created_at: int
    updated_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class UserOneTimeTokenSchema(BaseModel):
    id: int
    user_id: int
    token: str
    token_type: int
    created_at: int
    updated_at: int
    expired_at: int
    deleted_at: int | None = None

    class Config:
        from_attributes = True


class SessionSchema(BaseModel):
    user_id: int
    session_id: str


# ==== Master rows (immutable once loaded) =====================================


class ItemMasterSchema(BaseModel):
    id: int
    item_type: int
    name: str
    description: str | None = None
    amount_per_sec: int | None = None
    max_level: int | None = None
    max_amount_per_sec: int | None = None
    base_exp_per_level: int | None = None
    gained_exp: int | None = None
    shortening_min: int | None = None

    class Config:
        from_attributes = True
        frozen = True


class GachaMasterSchema(BaseModel):
    id: int
    name: str
    start_at: int
    end_at: int
    display_order: int
    created_at: int

    class Config:
        from_attributes = True
        frozen = True


class GachaItemMasterSchema(BaseModel):
    id: int
    gacha_id: int
    item_type: int
    item_id: int
    amount: int
    weight: int
    created_at: int

    class Config:
        from_attributes = True
        frozen = True


class LoginBonusMasterSchema(BaseModel):
    id: int
    start_at: int
    end_at: int
    column_count: int
    looped: bool
    created_at: int

    class Config:
        from_attributes = True
        frozen = True


class LoginBonusRewardMasterSchema(BaseModel):
    id: int
    login_bonus_id: int
    reward_sequence: int
    item_type: int
    item_id: int
    amount: int
    created_at: int

    class Config:
        from_attributes = True
        frozen = True


class PresentAllMasterSchema(BaseModel):
    id: int
    registered_start_at: int
    registered_end_at: int
    item_type: int
    item_id: int
    amount: int
    present_message: str | None = None
    created_at: int

    class Config:
        from_attributes = True
        frozen = True
