from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings

from roomgate.schemas.user import UserType


class Settings(BaseSettings):
    database_url: str
    redis_url: Optional[str] = None
    role_cache_ttl_seconds: int = 300

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24

    environment: Literal["development", "production"] = "development"
    log_level: str = "INFO"

    # Room policy: a preset, optionally adjusted field by field
    room_policy: Literal["teacher_rooms", "owner_branches"] = "teacher_rooms"
    room_allowed_creator_roles: Optional[List[UserType]] = None
    room_auto_enroll_creator: Optional[bool] = None
    room_supports_archive: Optional[bool] = None
    room_supports_hide: Optional[bool] = None
    room_require_join_approval: Optional[bool] = None
    room_single_membership: Optional[bool] = None

    default_cover_image_url: str = (
        "https://images.unsplash.com/photo-1497633762265-9d179a990aa6?w=800&h=400&fit=crop"
    )
    join_code_insert_attempts: int = 5

    # Asset storage
    asset_storage_url: str = "http://localhost:9000"
    asset_storage_api_key: Optional[str] = None
    asset_storage_public_base_url: Optional[str] = None
    asset_storage_timeout_seconds: float = 10.0
    cover_image_max_size: int = 1024 * 1024 * 2  # 2 MB
    cover_image_content_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    default_page_size: int = 10
    max_page_size: int = 100

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
