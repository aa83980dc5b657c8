from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column, Index, UniqueConstraint
from sqlalchemy.types import BigInteger, Boolean, Integer, String, Text


class Base(DeclarativeBase):
    pass


# ==============================================================================
# ==== Per-user tables (live on the user's shard) ==============================
# ==============================================================================


class User(Base):
    __tablename__ = "users"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    coin = Column(BigInteger, nullable=False, default=0)
    last_getreward_at = Column(BigInteger, nullable=False)
    last_activated_at = Column(BigInteger, nullable=False)
    registered_at = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserDevice(Base):
    __tablename__ = "user_devices"
    __table_args__ = (UniqueConstraint("user_id", "platform_id"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    platform_id = Column(String(255), nullable=False)
    platform_type = Column(Integer, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserBan(Base):
    __tablename__ = "user_bans"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False, unique=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserCard(Base):
    __tablename__ = "user_cards"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False, index=True)
    card_id = Column(BigInteger, nullable=False)
    amount_per_sec = Column(Integer, nullable=False)
    level = Column(Integer, nullable=False)
    total_exp = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserDeck(Base):
    __tablename__ = "user_decks"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False, index=True)
    user_card_id_1 = Column(BigInteger, nullable=False)
    user_card_id_2 = Column(BigInteger, nullable=False)
    user_card_id_3 = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserItem(Base):
    __tablename__ = "user_items"
    __table_args__ = (UniqueConstraint("user_id", "item_id"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    item_type = Column(Integer, nullable=False)
    item_id = Column(BigInteger, nullable=False)
    amount = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserPresent(Base):
    __tablename__ = "user_presents"
    __table_args__ = (Index("ix_user_presents_user_id_created_at", "user_id", "created_at"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    sent_at = Column(BigInteger, nullable=False)
    item_type = Column(Integer, nullable=False)
    item_id = Column(BigInteger, nullable=False)
    amount = Column(BigInteger, nullable=False)
    present_message = Column(Text)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserPresentAllReceivedHistory(Base):
    __tablename__ = "user_present_all_received_history"
    __table_args__ = (UniqueConstraint("user_id", "present_all_id"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    present_all_id = Column(BigInteger, nullable=False)
    received_at = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserLoginBonus(Base):
    __tablename__ = "user_login_bonuses"
    __table_args__ = (UniqueConstraint("user_id", "login_bonus_id"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False)
    login_bonus_id = Column(BigInteger, nullable=False)
    last_reward_sequence = Column(Integer, nullable=False)
    loop_count = Column(Integer, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


class UserOneTimeToken(Base):
    __tablename__ = "user_one_time_tokens"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(BigInteger, nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True)
    token_type = Column(Integer, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    expired_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)


# ==============================================================================
# ==== Master tables (read only, replicated on every shard) ====================
# ==============================================================================


class ItemMaster(Base):
    __tablename__ = "item_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    item_type = Column(Integer, nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text)
    amount_per_sec = Column(Integer)
    max_level = Column(Integer)
    max_amount_per_sec = Column(Integer)
    base_exp_per_level = Column(Integer)
    gained_exp = Column(Integer)
    shortening_min = Column(BigInteger)


class GachaMaster(Base):
    __tablename__ = "gacha_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String(128), nullable=False)
    start_at = Column(BigInteger, nullable=False)
    end_at = Column(BigInteger, nullable=False)
    display_order = Column(Integer, nullable=False)
    created_at = Column(BigInteger, nullable=False)


class GachaItemMaster(Base):
    __tablename__ = "gacha_item_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    gacha_id = Column(BigInteger, nullable=False, index=True)
    item_type = Column(Integer, nullable=False)
    item_id = Column(BigInteger, nullable=False)
    amount = Column(Integer, nullable=False)
    weight = Column(Integer, nullable=False)
    created_at = Column(BigInteger, nullable=False)


class LoginBonusMaster(Base):
    __tablename__ = "login_bonus_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    start_at = Column(BigInteger, nullable=False)
    end_at = Column(BigInteger, nullable=False)
    column_count = Column(Integer, nullable=False)
    looped = Column(Boolean, nullable=False)
    created_at = Column(BigInteger, nullable=False)


class LoginBonusRewardMaster(Base):
    __tablename__ = "login_bonus_reward_masters"
    __table_args__ = (UniqueConstraint("login_bonus_id", "reward_sequence"),)
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    login_bonus_id = Column(BigInteger, nullable=False)
    reward_sequence = Column(Integer, nullable=False)
    item_type = Column(Integer, nullable=False)
    item_id = Column(BigInteger, nullable=False)
    amount = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)


class PresentAllMaster(Base):
    __tablename__ = "present_all_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    registered_start_at = Column(BigInteger, nullable=False)
    registered_end_at = Column(BigInteger, nullable=False)
    item_type = Column(Integer, nullable=False)
    item_id = Column(BigInteger, nullable=False)
    amount = Column(BigInteger, nullable=False)
    present_message = Column(Text)
    created_at = Column(BigInteger, nullable=False)


class VersionMaster(Base):
    __tablename__ = "version_masters"
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    status = Column(Integer, nullable=False)  # 1 = active
    master_version = Column(String(128), nullable=False)
